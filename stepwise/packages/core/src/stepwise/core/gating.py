"""SequentialGate -- 保证每个 (user, goal) 同一时刻至多一个活跃任务

所有推进都经过 try_advance：
1. 检查是否已有 pending / in_progress 任务
2. 选出 sequence_order 最小的 queued 任务
3. backlog 耗尽时区分 GoalComplete 与 NoQueuedTasks
4. 以单条条件 UPDATE 原子激活候选任务（检查与写入合并）

进程内调用方按 (user, goal) 加锁串行化；跨进程由条件 UPDATE 与
idx_tasks_one_active 部分唯一索引兜底。
"""

import asyncio
from typing import NoReturn

import aiosqlite
import structlog
from ulid import ULID

from .clock import Clock, SystemClock
from .exceptions import (
    AlreadyActiveError,
    GoalCompleteError,
    NoQueuedTasksError,
    NotFoundError,
    TransientStoreError,
)
from .models.enums import ActorType, AdvanceMode, EventType, GoalStatus, TaskStatus
from .models.event import Event
from .models.goal import Goal
from .models.payloads import TaskAssignedPayload
from .models.task import Task
from .state_machine import ensure_transition
from .store import StoreGroup
from .store.transaction import activate_task_with_event, mark_goal_completed
from .validation import validate_identifier

log = structlog.get_logger()


class SequentialGate:
    """顺序门控"""

    _max_activation_retries = 3

    def __init__(self, store_group: StoreGroup, clock: Clock | None = None) -> None:
        self._stores = store_group
        self._clock = clock or SystemClock()
        self._goal_locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._goal_locks_guard = asyncio.Lock()

    async def try_advance(
        self,
        user_id: str,
        goal_id: str,
        *,
        strict: bool = False,
        actor: ActorType | None = None,
    ) -> Task | None:
        """尝试激活下一个任务

        Args:
            user_id: 用户 ID
            goal_id: 目标 ID
            strict: True 时已有活跃任务抛出 AlreadyActiveError；
                False（调度器）时静默返回 None
            actor: 审计事件中的操作者，默认按模式推断

        Returns:
            新激活的任务；lenient 模式下已有活跃任务时返回 None

        Raises:
            InvalidRequestError: 标识符格式错误
            NotFoundError: goal 不存在或不属于该用户
            AlreadyActiveError: strict 模式下已有活跃任务
            GoalCompleteError: backlog 耗尽且全部完成（goal 同时标记 completed）
            NoQueuedTasksError: backlog 耗尽但仍有未完成任务
            TransientStoreError: 底层存储失败，可整体重试
        """
        user_id = validate_identifier(user_id, "user_id")
        goal_id = validate_identifier(goal_id, "goal_id")
        mode = AdvanceMode.STRICT if strict else AdvanceMode.LENIENT
        if actor is None:
            actor = ActorType.USER if strict else ActorType.SCHEDULER

        lock = await self._get_goal_lock(user_id, goal_id)
        async with lock:
            try:
                return await self._advance_locked(user_id, goal_id, mode, actor)
            except aiosqlite.OperationalError as e:
                log.warning(
                    "advance_store_error",
                    user_id=user_id,
                    goal_id=goal_id,
                    error=str(e),
                )
                raise TransientStoreError("try_advance", e) from e

    async def can_advance(self, user_id: str, goal_id: str) -> bool:
        """无活跃任务且仍有 queued 任务时返回 True（只读）"""
        user_id = validate_identifier(user_id, "user_id")
        goal_id = validate_identifier(goal_id, "goal_id")
        try:
            await self._load_goal(user_id, goal_id)
            task_store = self._stores.task_store
            if await task_store.has_active_task(user_id, goal_id):
                return False
            return await task_store.find_next_queued(user_id, goal_id) is not None
        except aiosqlite.OperationalError as e:
            raise TransientStoreError("can_advance", e) from e

    async def _advance_locked(
        self,
        user_id: str,
        goal_id: str,
        mode: AdvanceMode,
        actor: ActorType,
    ) -> Task | None:
        goal = await self._load_goal(user_id, goal_id)
        task_store = self._stores.task_store

        for attempt in range(1, self._max_activation_retries + 1):
            if await task_store.has_active_task(user_id, goal_id):
                return self._already_active(goal_id, mode)

            candidate = await task_store.find_next_queued(user_id, goal_id)
            if candidate is None:
                await self._raise_exhausted(goal)

            ensure_transition(candidate.status, TaskStatus.PENDING)
            now = self._clock.now()

            def build_event(seq: int, task: Task = candidate) -> Event:
                return Event(
                    event_id=str(ULID()),
                    task_id=task.task_id,
                    task_seq=seq,
                    ts=now,
                    type=EventType.TASK_ASSIGNED,
                    actor=actor,
                    payload=TaskAssignedPayload(
                        goal_id=goal_id,
                        sequence_order=task.sequence_order or 0,
                        mode=mode,
                    ).model_dump(),
                )

            try:
                async with self._stores.write_lock:
                    activated = await activate_task_with_event(
                        self._stores.conn,
                        self._stores.task_store,
                        self._stores.event_store,
                        candidate,
                        now,
                        build_event,
                    )
            except aiosqlite.IntegrityError as e:
                if self._is_active_conflict(e):
                    return self._already_active(goal_id, mode)
                raise

            if activated:
                task = await task_store.get_task(candidate.task_id)
                log.info(
                    "task_activated",
                    user_id=user_id,
                    goal_id=goal_id,
                    task_id=candidate.task_id,
                    sequence_order=candidate.sequence_order,
                    mode=mode.value,
                )
                return task

            log.warning(
                "activation_race_retry",
                goal_id=goal_id,
                task_id=candidate.task_id,
                attempt=attempt,
            )

        raise TransientStoreError(
            "try_advance",
            RuntimeError("activation lost the race after retries"),
        )

    async def _load_goal(self, user_id: str, goal_id: str) -> Goal:
        goal = await self._stores.goal_store.get_goal(goal_id)
        if goal is None or goal.user_id != user_id:
            raise NotFoundError(f"Goal not found: {goal_id}")
        return goal

    async def _raise_exhausted(self, goal: Goal) -> NoReturn:
        """backlog 耗尽：全部完成则完结 goal 并抛 GoalComplete，否则 NoQueuedTasks"""
        counts = await self._stores.task_store.count_tasks_by_status(
            goal.user_id, goal.goal_id
        )
        total = sum(counts.values())
        if total > 0 and counts[TaskStatus.COMPLETED] == total:
            if goal.status != GoalStatus.COMPLETED:
                async with self._stores.write_lock:
                    await mark_goal_completed(
                        self._stores.conn,
                        self._stores.goal_store,
                        goal.goal_id,
                        self._clock.now(),
                    )
                log.info("goal_completed", user_id=goal.user_id, goal_id=goal.goal_id)
            raise GoalCompleteError(goal.goal_id)
        raise NoQueuedTasksError(goal.goal_id)

    @staticmethod
    def _already_active(goal_id: str, mode: AdvanceMode) -> None:
        if mode == AdvanceMode.STRICT:
            raise AlreadyActiveError(goal_id)
        log.debug("advance_skipped_already_active", goal_id=goal_id)
        return None

    @staticmethod
    def _is_active_conflict(error: Exception) -> bool:
        if not isinstance(error, aiosqlite.IntegrityError):
            return False
        text = str(error)
        return "idx_tasks_one_active" in text or "tasks.user_id, tasks.goal_id" in text

    async def _get_goal_lock(self, user_id: str, goal_id: str) -> asyncio.Lock:
        """获取 (user, goal) 级别锁，串行化同一 goal 的推进。"""
        key = (user_id, goal_id)
        async with self._goal_locks_guard:
            lock = self._goal_locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._goal_locks[key] = lock
            return lock
