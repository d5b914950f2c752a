"""packages/core 测试配置 -- 纯函数测试用的内存 Task 工厂"""

from datetime import UTC, datetime

import pytest
from stepwise.core.models import Task, TaskContent, TaskStatus


@pytest.fixture
def make_task():
    """构造内存中的 Task（不写库）"""
    counter = {"n": 0}

    def _make(
        status: TaskStatus = TaskStatus.PENDING,
        created_at: datetime | None = None,
        assigned_date: datetime | None = None,
        completed_at: datetime | None = None,
        updated_at: datetime | None = None,
        sequence_order: int | None = None,
    ) -> Task:
        counter["n"] += 1
        n = counter["n"]
        created = created_at or datetime(2026, 3, 1, 8, 0, tzinfo=UTC)
        if assigned_date is None and status != TaskStatus.QUEUED:
            assigned_date = created
        return Task(
            task_id=f"task-{n:04d}",
            user_id="user-1",
            goal_id="goal-1",
            sequence_order=sequence_order or n,
            status=status,
            assigned_date=assigned_date,
            scheduled_date=assigned_date,
            completed_at=completed_at,
            created_at=created,
            updated_at=updated_at or completed_at or created,
            content=TaskContent(title=f"Task {n}"),
        )

    return _make
