"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + Gate 与每日调度器的启动/停止 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from stepwise.core.clock import SystemClock
from stepwise.core.config import get_db_path, load_scheduler_config
from stepwise.core.gating import SequentialGate
from stepwise.core.scheduler import DailyScheduler
from stepwise.core.store import create_store_group

from .errors import register_error_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import dashboard, goals, health, tasks

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB / Gate / 调度器，关闭时按相反顺序清理"""
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    # 调度器与手动请求共用同一个 Gate
    clock = SystemClock()
    gate = SequentialGate(store_group, clock)
    app.state.clock = clock
    app.state.gate = gate

    scheduler_config = load_scheduler_config()
    app.state.scheduler_config = scheduler_config
    scheduler: DailyScheduler | None = None
    if scheduler_config.enabled:
        scheduler = DailyScheduler(
            gate,
            store_group.goal_store,
            clock,
            fire_hour=scheduler_config.fire_hour,
        )
        scheduler.start()
    else:
        log.info("daily_scheduler_disabled")
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Stepwise Gateway",
        version="0.1.0",
        description="顺序任务门控与学习进度 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging，Logging 在最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    register_error_handlers(app)

    app.include_router(goals.router, tags=["goals"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(dashboard.router, tags=["dashboard"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
