"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、调度器开关与触发时刻、汇总窗口长度等可配置项。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("STEPWISE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "STEPWISE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "stepwise.db"),
    )


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("invalid_int_config", env_var=name, value=raw, fallback=default)
        return default


class SchedulerConfig(BaseModel):
    """每日推进调度器配置

    环境变量:
        STEPWISE_SCHEDULER_ENABLED: 是否启动调度器（默认 true）
        STEPWISE_SCHEDULER_FIRE_HOUR: 每日触发的 UTC 小时（默认 0）
    """

    enabled: bool = Field(default=True, description="是否启动调度器")
    fire_hour: int = Field(default=0, ge=0, le=23, description="每日触发的 UTC 小时")


def load_scheduler_config() -> SchedulerConfig:
    """从环境变量加载调度器配置"""
    enabled = os.environ.get("STEPWISE_SCHEDULER_ENABLED", "true").lower() not in (
        "0",
        "false",
        "no",
    )
    fire_hour = _int_from_env("STEPWISE_SCHEDULER_FIRE_HOUR", 0)
    if not 0 <= fire_hour <= 23:
        log.warning(
            "invalid_fire_hour_config",
            env_var="STEPWISE_SCHEDULER_FIRE_HOUR",
            value=fire_hour,
            fallback=0,
        )
        fire_hour = 0
    return SchedulerConfig(enabled=enabled, fire_hour=fire_hour)


# 仪表盘默认汇总窗口（天）
SUMMARY_DAYS: int = _int_from_env("STEPWISE_SUMMARY_DAYS", 7)

# 完成率历史窗口（天）
STATUS_HISTORY_DAYS: int = _int_from_env("STEPWISE_STATUS_HISTORY_DAYS", 14)

# 汇总窗口上限，避免一次请求扫描过长历史
MAX_SUMMARY_DAYS: int = 366

# 目标标题最大长度
GOAL_TITLE_MAX_LENGTH: int = 200
