"""Stepwise Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    VISIBLE_STATES,
    ActorType,
    AdvanceMode,
    BadgeType,
    EventType,
    GoalStatus,
    TaskStatus,
    validate_transition,
)
from .event import Event
from .goal import Goal
from .payloads import (
    BacklogCreatedPayload,
    SequenceMigratedPayload,
    StateTransitionPayload,
    TaskAssignedPayload,
)
from .progress import Badge, DashboardSummary, DayStats, DaySummary, StatusHistoryPoint
from .reports import DailyRunReport, IntegrityReport, MigrationResult
from .task import Task, TaskContent, TaskSpec

__all__ = [
    # 枚举
    "TaskStatus",
    "GoalStatus",
    "EventType",
    "ActorType",
    "AdvanceMode",
    "BadgeType",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "ACTIVE_STATES",
    "VISIBLE_STATES",
    "validate_transition",
    # Task / Goal
    "Task",
    "TaskContent",
    "TaskSpec",
    "Goal",
    # Event
    "Event",
    # Payloads
    "BacklogCreatedPayload",
    "TaskAssignedPayload",
    "StateTransitionPayload",
    "SequenceMigratedPayload",
    # 进度
    "DaySummary",
    "Badge",
    "DayStats",
    "StatusHistoryPoint",
    "DashboardSummary",
    # 报告
    "DailyRunReport",
    "IntegrityReport",
    "MigrationResult",
]
