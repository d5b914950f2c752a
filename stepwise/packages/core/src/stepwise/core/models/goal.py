"""Goal Domain Model"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import GoalStatus


class Goal(BaseModel):
    """Goal 数据模型

    创建时附带一组有序 backlog；当 backlog 耗尽且所有任务完成时
    由 SequentialGate 推进到 completed。
    """

    goal_id: str = Field(description="唯一标识，ULID 格式")
    user_id: str = Field(description="所属用户")
    title: str = Field(description="目标名称")
    status: GoalStatus = Field(default=GoalStatus.ACTIVE, description="当前状态")
    current_phase: int = Field(default=1, ge=1, description="当前路线图阶段")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
