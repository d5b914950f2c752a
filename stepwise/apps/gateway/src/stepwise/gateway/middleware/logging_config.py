"""structlog 配置模块

STEPWISE_LOG_FORMAT=dev（默认）：可读的控制台输出
STEPWISE_LOG_FORMAT=json：结构化 JSON 输出
标准库 logging（uvicorn、aiosqlite 等）统一经 ProcessorFormatter 渲染。
Logfire 由 LOGFIRE_SEND_TO_LOGFIRE 控制，不可用时降级为本地日志。
"""

import logging
import os

import structlog
from fastapi import FastAPI

# 第三方库的噪声日志只保留 WARNING 以上
_QUIET_LOGGERS = ("aiosqlite", "httpx", "httpcore")


def _select_renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """初始化 structlog 与标准库 logging（进程内调用一次即可，重复调用会覆盖）"""
    log_format = os.environ.get("STEPWISE_LOG_FORMAT", "dev").lower()
    log_level = os.environ.get("STEPWISE_LOG_LEVEL", "INFO").upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_select_renderer(log_format),
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire(app: FastAPI) -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE=true 时启用（需要 LOGFIRE_TOKEN），否则只写本地日志。
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name="stepwise-gateway")
        logfire.instrument_fastapi(app)
    except Exception as e:
        # 初始化失败不影响服务运行
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            message="Logfire 初始化失败，降级为纯本地日志",
        )
