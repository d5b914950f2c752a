"""TraceMiddleware -- 将 goal_id / task_id 绑定到日志上下文

goal_id 取自路径 /api/goals/{goal_id} 或查询参数 goal_id；
task_id 取自路径 /api/tasks/{task_id}/...。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# /api/tasks 下的固定子路由，不是 task_id
_TASK_SUBROUTES = {"daily", "active", "assigned", "by-date", "request-next"}


def extract_trace_ids(path: str, query_goal_id: str | None) -> dict[str, str]:
    """从路径与查询参数中提取 goal_id / task_id"""
    ids: dict[str, str] = {}
    parts = [p for p in path.split("/") if p]
    for i, part in enumerate(parts[:-1]):
        value = parts[i + 1]
        if part == "goals":
            ids["goal_id"] = value
        elif part == "tasks" and value not in _TASK_SUBROUTES:
            ids["task_id"] = value
    if query_goal_id and "goal_id" not in ids:
        ids["goal_id"] = query_goal_id
    return ids


class TraceMiddleware(BaseHTTPMiddleware):
    """goal / task 级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        ids = extract_trace_ids(request.url.path, request.query_params.get("goal_id"))
        if ids:
            structlog.contextvars.bind_contextvars(**ids)
        return await call_next(request)
