"""Backlog 写入 -- 将内容生成方给出的有序任务规格持久化为 queued backlog

sequence_order 依次为 1..N，全部以 queued 写入，随后调用一次 try_advance
（lenient）激活第 1 个任务。goal 与 backlog 在同一事务内写入。
"""

from collections.abc import Sequence
from datetime import datetime

import structlog
from ulid import ULID

from .exceptions import InvalidRequestError
from .gating import SequentialGate
from .models.enums import ActorType, EventType, TaskStatus
from .models.event import Event
from .models.goal import Goal
from .models.payloads import BacklogCreatedPayload
from .models.task import Task, TaskSpec
from .store import StoreGroup
from .store.transaction import create_goal_with_backlog

log = structlog.get_logger()


def resolve_phase(spec_phase: int | None, index: int, total: int, num_phases: int) -> int:
    """任务所属阶段：优先使用给定值，否则按位置均分到各阶段，最终钳制到 [1, num_phases]"""
    num_phases = max(1, num_phases)
    phase = spec_phase or (index * num_phases // max(1, total)) + 1
    return max(1, min(num_phases, phase))


def build_backlog(
    goal: Goal,
    specs: Sequence[TaskSpec],
    now: datetime,
    num_phases: int | None = None,
) -> list[Task]:
    """构建 queued 任务列表（不写库）"""
    if not specs:
        raise InvalidRequestError("A goal needs at least one task")
    if num_phases is None:
        num_phases = max([s.phase for s in specs if s.phase] or [1])

    total = len(specs)
    return [
        Task(
            task_id=str(ULID()),
            user_id=goal.user_id,
            goal_id=goal.goal_id,
            sequence_order=index + 1,
            status=TaskStatus.QUEUED,
            phase=resolve_phase(spec.phase, index, total, num_phases),
            created_at=now,
            updated_at=now,
            content=spec.content,
        )
        for index, spec in enumerate(specs)
    ]


async def populate_backlog(
    stores: StoreGroup,
    gate: SequentialGate,
    goal: Goal,
    specs: Sequence[TaskSpec],
    now: datetime,
    num_phases: int | None = None,
) -> tuple[list[Task], Task | None]:
    """写入 goal 与 backlog，并激活第一个任务

    Returns:
        (写入的 queued 任务, 被激活的任务)

    Raises:
        InvalidRequestError: specs 为空
    """
    tasks = build_backlog(goal, specs, now, num_phases)
    events = [
        Event(
            event_id=str(ULID()),
            task_id=task.task_id,
            task_seq=1,
            ts=now,
            type=EventType.BACKLOG_CREATED,
            actor=ActorType.SYSTEM,
            payload=BacklogCreatedPayload(
                goal_id=goal.goal_id,
                sequence_order=task.sequence_order or 0,
                backlog_size=len(tasks),
            ).model_dump(),
        )
        for task in tasks
    ]

    async with stores.write_lock:
        await create_goal_with_backlog(
            stores.conn,
            stores.goal_store,
            stores.task_store,
            stores.event_store,
            goal,
            tasks,
            events,
        )
    log.info(
        "backlog_populated",
        user_id=goal.user_id,
        goal_id=goal.goal_id,
        backlog_size=len(tasks),
    )

    activated = await gate.try_advance(
        goal.user_id,
        goal.goal_id,
        strict=False,
        actor=ActorType.SYSTEM,
    )
    return tasks, activated
