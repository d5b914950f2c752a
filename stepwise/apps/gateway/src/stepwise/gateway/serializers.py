"""API 边界的显式映射函数 -- 领域实体不携带任何派生展示字段"""

from datetime import datetime

from stepwise.core.models import Goal, Task


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def task_to_dict(task: Task) -> dict:
    return {
        "task_id": task.task_id,
        "goal_id": task.goal_id,
        "sequence_order": task.sequence_order,
        "status": task.status.value,
        "phase": task.phase,
        "assigned_date": _iso(task.assigned_date),
        "scheduled_date": _iso(task.scheduled_date),
        "completed_at": _iso(task.completed_at),
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
        "content": task.content.model_dump(mode="json"),
    }


def goal_to_dict(goal: Goal) -> dict:
    return {
        "goal_id": goal.goal_id,
        "title": goal.title,
        "status": goal.status.value,
        "current_phase": goal.current_phase,
        "created_at": _iso(goal.created_at),
        "updated_at": _iso(goal.updated_at),
        "completed_at": _iso(goal.completed_at),
    }
