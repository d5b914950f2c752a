"""枚举定义 -- Task 状态机 + Goal 状态 + 审计事件类型

包含 TaskStatus 状态机、GoalStatus、EventType、ActorType、BadgeType 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES / ACTIVE_STATES /
VISIBLE_STATES 状态集合。状态机本身不做任何 I/O。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机

    queued 为隐藏 backlog：未被推进的任务对用户不可见。
    """

    QUEUED = "queued"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"

    # 终态
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GoalStatus(StrEnum):
    """Goal 生命周期状态"""

    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.QUEUED: {TaskStatus.PENDING, TaskStatus.CANCELLED},
    TaskStatus.PENDING: {
        TaskStatus.IN_PROGRESS,
        TaskStatus.COMPLETED,
        TaskStatus.CANCELLED,
    },
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}

# 每个 (user, goal) 至多一个任务处于这些状态
ACTIVE_STATES: set[TaskStatus] = {
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
}

# 可被用户 / 日历 / 仪表盘读取的状态（queued 永远不可见）
VISIBLE_STATES: set[TaskStatus] = {
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}


class EventType(StrEnum):
    """任务审计事件类型"""

    BACKLOG_CREATED = "BACKLOG_CREATED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    STATE_TRANSITION = "STATE_TRANSITION"
    SEQUENCE_MIGRATED = "SEQUENCE_MIGRATED"


class ActorType(StrEnum):
    """操作者类型"""

    USER = "user"
    SCHEDULER = "scheduler"
    SYSTEM = "system"


class AdvanceMode(StrEnum):
    """推进模式

    lenient: 调度器使用，已有活跃任务时静默 no-op。
    strict: 用户手动请求使用，所有失败均作为错误上抛。
    """

    LENIENT = "lenient"
    STRICT = "strict"


class BadgeType(StrEnum):
    """徽章类型"""

    STREAK = "streak"
    MILESTONE = "milestone"
    EFFICIENCY = "efficiency"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
