"""Task Domain Model

Task 是 (user_id, goal_id) 下有序 backlog 中的一项。
核心子系统只读写 status / assigned_date / scheduled_date，
content 为内容生成方产出的不透明数据，只在首次持久化时做边界校验。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import TaskStatus


class TaskContent(BaseModel):
    """任务内容（不透明 payload）

    仅校验 title 存在，其余字段原样保存。
    """

    model_config = {"extra": "allow"}

    title: str = Field(min_length=1, description="任务标题")
    description: str = Field(default="", description="任务描述")
    topics: list[str] = Field(default_factory=list, description="涉及主题")
    resources: list[dict[str, Any]] = Field(default_factory=list, description="学习资源")


class TaskSpec(BaseModel):
    """内容生成方返回的单个任务规格（尚未分配 sequence_order）"""

    content: TaskContent
    phase: int | None = Field(default=None, description="所属路线图阶段")


class Task(BaseModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    user_id: str = Field(description="所属用户")
    goal_id: str = Field(description="所属目标")
    sequence_order: int | None = Field(
        default=None,
        ge=1,
        description="backlog 顺序，同一 goal 内唯一；旧数据迁移前为空",
    )
    status: TaskStatus = Field(default=TaskStatus.QUEUED, description="当前状态")
    phase: int = Field(default=1, ge=1, description="路线图阶段")
    assigned_date: datetime | None = Field(default=None, description="离开 queued 的时间")
    scheduled_date: datetime | None = Field(default=None, description="日历放置时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    content: TaskContent = Field(description="任务内容")

    @property
    def completion_time(self) -> datetime | None:
        """完成时间；旧数据缺少 completed_at 时回退到 updated_at"""
        if self.status != TaskStatus.COMPLETED:
            return None
        return self.completed_at or self.updated_at
