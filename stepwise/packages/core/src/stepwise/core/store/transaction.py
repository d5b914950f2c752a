"""任务更新 + 审计事件原子事务封装

在同一 SQLite 事务内原子提交 Task 条件更新和对应的审计事件，
条件不满足时回滚，不留下任何副作用。
"""

from collections.abc import Callable
from datetime import datetime

import aiosqlite

from ..models.enums import GoalStatus, TaskStatus
from ..models.event import Event
from ..models.goal import Goal
from ..models.task import Task
from .event_store import SqliteEventStore
from .goal_store import SqliteGoalStore
from .task_store import SqliteTaskStore


async def activate_task_with_event(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    event_store: SqliteEventStore,
    task: Task,
    now: datetime,
    event_builder: Callable[[int], Event],
) -> bool:
    """原子激活 queued 任务并写入 TASK_ASSIGNED 事件

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        task_store: TaskStore 实例
        event_store: EventStore 实例
        task: 候选 queued 任务
        now: 激活时间
        event_builder: 根据 task_seq 构建事件

    Returns:
        True 如果激活成功；条件不满足时回滚并返回 False

    Raises:
        Exception: 事务提交失败时自动回滚并重新抛出
    """
    try:
        activated = await task_store.try_activate_task(
            task.task_id, task.user_id, task.goal_id, now
        )
        if not activated:
            await conn.rollback()
            return False

        seq = await event_store.get_next_task_seq(task.task_id)
        await event_store.append_event(event_builder(seq))

        # 原子提交
        await conn.commit()
        return True
    except Exception:
        await conn.rollback()
        raise


async def transition_task_with_event(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    event_store: SqliteEventStore,
    task_id: str,
    from_status: TaskStatus,
    to_status: TaskStatus,
    now: datetime,
    event_builder: Callable[[int], Event],
) -> bool:
    """原子执行条件状态流转并写入 STATE_TRANSITION 事件

    Returns:
        True 如果流转生效；当前状态已不是 from_status 时回滚并返回 False
    """
    try:
        updated = await task_store.update_task_status(
            task_id=task_id,
            status=to_status,
            expected_status=from_status,
            updated_at=now,
        )
        if not updated:
            await conn.rollback()
            return False

        seq = await event_store.get_next_task_seq(task_id)
        await event_store.append_event(event_builder(seq))

        await conn.commit()
        return True
    except Exception:
        await conn.rollback()
        raise


async def create_goal_with_backlog(
    conn: aiosqlite.Connection,
    goal_store: SqliteGoalStore,
    task_store: SqliteTaskStore,
    event_store: SqliteEventStore,
    goal: Goal,
    tasks: list[Task],
    events: list[Event],
) -> None:
    """单事务写入 goal + 全部 queued 任务 + 初始事件

    任一写入失败则全部回滚，避免留下没有 backlog 的 goal。
    """
    try:
        await goal_store.create_goal(goal)
        await task_store.create_tasks(tasks)
        for event in events:
            await event_store.append_event(event)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def mark_goal_completed(
    conn: aiosqlite.Connection,
    goal_store: SqliteGoalStore,
    goal_id: str,
    now: datetime,
) -> None:
    """将 goal 推进到 completed 并提交"""
    try:
        await goal_store.update_goal_status(goal_id, GoalStatus.COMPLETED, now)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
