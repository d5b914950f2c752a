"""Event Payload 子类型

所有审计事件的结构化 payload 定义。
"""

from pydantic import BaseModel, Field

from .enums import AdvanceMode, TaskStatus


class BacklogCreatedPayload(BaseModel):
    """BACKLOG_CREATED 事件 payload"""

    goal_id: str
    sequence_order: int
    backlog_size: int = Field(description="本次写入的 backlog 总数")


class TaskAssignedPayload(BaseModel):
    """TASK_ASSIGNED 事件 payload"""

    goal_id: str
    sequence_order: int
    mode: AdvanceMode = Field(description="推进模式")


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    from_status: TaskStatus
    to_status: TaskStatus
    reason: str = Field(default="", description="流转原因")


class SequenceMigratedPayload(BaseModel):
    """SEQUENCE_MIGRATED 事件 payload"""

    previous_status: TaskStatus
    sequence_order: int
