"""领域错误 -> HTTP 响应映射

所有路由共用同一张映射表，错误体统一为 {"error": {"code", "message"}}。
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse
from stepwise.core.exceptions import (
    AlreadyActiveError,
    GoalCompleteError,
    InvalidRequestError,
    InvalidTransitionError,
    NoQueuedTasksError,
    NotFoundError,
    StepwiseError,
    TransientStoreError,
)

log = structlog.get_logger()

_STATUS_BY_ERROR: dict[type[StepwiseError], int] = {
    InvalidRequestError: 400,
    NotFoundError: 404,
    AlreadyActiveError: 409,
    NoQueuedTasksError: 409,
    InvalidTransitionError: 409,
    GoalCompleteError: 200,
    TransientStoreError: 503,
}


def error_body(code: str, message: str, **extra) -> dict:
    return {"error": {"code": code, "message": message}, **extra}


def error_response(exc: StepwiseError) -> JSONResponse:
    """将领域错误转换为 JSONResponse"""
    status_code = 500
    for error_type, mapped in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = mapped
            break

    extra = {}
    if isinstance(exc, GoalCompleteError):
        extra = {"goal_complete": True, "tasks": []}
    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.code, exc.message, **extra),
    )


async def _handle_stepwise_error(request: Request, exc: StepwiseError) -> JSONResponse:
    if isinstance(exc, TransientStoreError):
        log.warning("request_store_error", code=exc.code, error=exc.message)
    else:
        log.info("request_rejected", code=exc.code, error=exc.message)
    return error_response(exc)


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg', '')}" for e in errors
    )
    return JSONResponse(
        status_code=400,
        content=error_body(InvalidRequestError.code, message or "invalid request"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StepwiseError, _handle_stepwise_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
