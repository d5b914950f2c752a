"""TaskService -- 任务查询与状态更新

所有读路径只返回可见任务（status != queued），hidden backlog 永远不会出现在响应中。
状态更新经状态机校验后以条件更新 + 审计事件原子写入；完成任务不会自动分配下一个。
"""

from datetime import UTC, date, datetime, time, timedelta

import structlog
from stepwise.core.clock import Clock
from stepwise.core.exceptions import (
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
)
from stepwise.core.models import (
    ActorType,
    Event,
    EventType,
    StateTransitionPayload,
    Task,
    TaskStatus,
)
from stepwise.core.state_machine import ensure_transition
from stepwise.core.store import StoreGroup
from stepwise.core.store.transaction import transition_task_with_event
from stepwise.core.validation import validate_identifier
from ulid import ULID

log = structlog.get_logger()

# 用户可直接设置的目标状态；queued -> pending 只能经由 Gate
USER_SETTABLE_STATES = {
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC 日的 [start, end) 区间"""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup, clock: Clock) -> None:
        self._stores = store_group
        self._clock = clock

    async def require_goal(self, user_id: str, goal_id: str) -> None:
        goal_id = validate_identifier(goal_id, "goal_id")
        goal = await self._stores.goal_store.get_goal(goal_id)
        if goal is None or goal.user_id != user_id:
            raise NotFoundError(f"Goal not found: {goal_id}")

    async def daily_tasks(self, user_id: str, goal_id: str) -> list[Task]:
        """今日（UTC）被分配的可见任务，sequence_order 倒序"""
        return await self.tasks_by_date(user_id, goal_id, self._clock.now().date())

    async def active_tasks(self, user_id: str, goal_id: str) -> list[Task]:
        """pending / in_progress 任务；没有则为空列表"""
        await self.require_goal(user_id, goal_id)
        return await self._stores.task_store.list_active_tasks(user_id, goal_id)

    async def assigned_tasks(self, user_id: str, goal_id: str) -> list[Task]:
        """goal 的全部可见任务，最近分配的在前"""
        await self.require_goal(user_id, goal_id)
        return await self._stores.task_store.list_visible_tasks(user_id, goal_id)

    async def tasks_by_date(self, user_id: str, goal_id: str, day: date) -> list[Task]:
        await self.require_goal(user_id, goal_id)
        start, end = utc_day_bounds(day)
        return await self._stores.task_store.list_tasks_assigned_between(
            user_id, start, end, goal_id=goal_id
        )

    async def update_status(
        self,
        user_id: str,
        task_id: str,
        new_status: TaskStatus,
    ) -> Task:
        """用户更新任务状态

        Raises:
            InvalidRequestError: 目标状态不允许由用户设置
            NotFoundError: 任务不存在、不属于用户或仍在 hidden backlog
            InvalidTransitionError: 状态机拒绝或并发下状态已变化
        """
        task_id = validate_identifier(task_id, "task_id")
        if new_status not in USER_SETTABLE_STATES:
            raise InvalidRequestError(f"Status {new_status.value} cannot be set directly")

        task = await self._stores.task_store.get_task(task_id)
        if task is None or task.user_id != user_id or task.status == TaskStatus.QUEUED:
            raise NotFoundError(f"Task not found: {task_id}")

        from_status = task.status
        ensure_transition(from_status, new_status)
        now = self._clock.now()

        def build_event(seq: int) -> Event:
            return Event(
                event_id=str(ULID()),
                task_id=task_id,
                task_seq=seq,
                ts=now,
                type=EventType.STATE_TRANSITION,
                actor=ActorType.USER,
                payload=StateTransitionPayload(
                    from_status=from_status,
                    to_status=new_status,
                    reason="user update",
                ).model_dump(),
            )

        async with self._stores.write_lock:
            updated = await transition_task_with_event(
                self._stores.conn,
                self._stores.task_store,
                self._stores.event_store,
                task_id,
                from_status,
                new_status,
                now,
                build_event,
            )
        if not updated:
            current = await self._stores.task_store.get_task(task_id)
            current_status = current.status.value if current else "unknown"
            raise InvalidTransitionError(current_status, new_status.value)

        log.info(
            "task_status_updated",
            task_id=task_id,
            goal_id=task.goal_id,
            from_status=from_status.value,
            to_status=new_status.value,
        )
        result = await self._stores.task_store.get_task(task_id)
        if result is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return result
