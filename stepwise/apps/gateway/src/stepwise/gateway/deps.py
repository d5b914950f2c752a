"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / Gate / Clock

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Header, Request
from stepwise.core.clock import Clock
from stepwise.core.gating import SequentialGate
from stepwise.core.store import StoreGroup
from stepwise.core.validation import validate_identifier


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_gate(request: Request) -> SequentialGate:
    """进程内共享同一个 Gate，(user, goal) 锁才能覆盖调度器与手动请求"""
    return request.app.state.gate


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """从 X-User-Id 头读取调用者（认证不在本服务范围内）"""
    return validate_identifier(x_user_id, "X-User-Id")
