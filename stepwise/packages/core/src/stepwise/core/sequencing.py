"""顺序系统运维工具 -- 旧任务迁移与顺序完整性校验

迁移规则：
- 缺少 sequence_order 的任务按 created_at、scheduled_date 排序后依次编号
- completed / cancelled 保持不变
- 第一个 in_progress 任务转为 pending（若该 goal 尚无活跃任务），其余未完成任务进入 queued
- 进入 queued 的任务清空 assigned_date / scheduled_date
- 迁移后仍无活跃任务时，通过 Gate 激活第一个 queued 任务

迁移直接改写旧行的状态，不经过 state_machine.ensure_transition：
in_progress -> queued 在正常流程中非法，只允许在这里出现。每次改写都记录
SEQUENCE_MIGRATED 事件。
"""

from datetime import datetime

import structlog
from ulid import ULID

from .exceptions import GoalCompleteError, NoQueuedTasksError
from .gating import SequentialGate
from .models.enums import ACTIVE_STATES, TERMINAL_STATES, ActorType, EventType, TaskStatus
from .models.event import Event
from .models.payloads import SequenceMigratedPayload
from .models.reports import IntegrityReport, MigrationResult
from .models.task import Task
from .store import StoreGroup
from .validation import validate_identifier

log = structlog.get_logger()


async def migrate_tasks_to_sequential(
    stores: StoreGroup,
    gate: SequentialGate,
    user_id: str,
    goal_id: str,
    now: datetime,
) -> MigrationResult:
    """为缺少 sequence_order 的旧任务编号并接入顺序门控"""
    user_id = validate_identifier(user_id, "user_id")
    goal_id = validate_identifier(goal_id, "goal_id")
    task_store = stores.task_store

    legacy = await task_store.list_unsequenced_tasks(user_id, goal_id)
    if not legacy:
        return MigrationResult(migrated_count=0, message="No tasks to migrate")

    base = await task_store.max_sequence_order(user_id, goal_id)
    # 只看已编号的活跃任务，待迁移任务本身的状态不算
    has_active = any(
        t.sequence_order is not None
        for t in await task_store.list_active_tasks(user_id, goal_id)
    )

    async with stores.write_lock:
        promote_task_id = await _apply_migration(stores, legacy, base, has_active, now)

    activated_task_id = promote_task_id
    if activated_task_id is None:
        try:
            activated = await gate.try_advance(
                user_id, goal_id, strict=False, actor=ActorType.SYSTEM
            )
        except (GoalCompleteError, NoQueuedTasksError):
            activated = None
        if activated is not None:
            activated_task_id = activated.task_id

    log.info(
        "sequence_migration_completed",
        user_id=user_id,
        goal_id=goal_id,
        migrated_count=len(legacy),
        activated_task_id=activated_task_id,
    )
    return MigrationResult(
        migrated_count=len(legacy),
        activated_task_id=activated_task_id,
        message=f"Successfully migrated {len(legacy)} tasks to sequential system",
    )


async def _apply_migration(
    stores: StoreGroup,
    legacy: list[Task],
    base: int,
    has_active: bool,
    now: datetime,
) -> str | None:
    """单事务写入编号与迁移后的状态，返回被恢复为 pending 的任务 ID"""
    promote_task_id: str | None = None
    promote_seq = 0
    promote_assigned: datetime | None = None

    try:
        # 第一阶段：编号，非终态任务一律先进入 queued，避免触发唯一活跃索引
        for index, task in enumerate(legacy):
            seq = base + index + 1
            if task.status in TERMINAL_STATES:
                new_status = task.status
                assigned = task.assigned_date or task.created_at
            else:
                new_status = TaskStatus.QUEUED
                assigned = None
                if (
                    task.status == TaskStatus.IN_PROGRESS
                    and not has_active
                    and promote_task_id is None
                ):
                    promote_task_id = task.task_id
                    promote_seq = seq
                    promote_assigned = task.assigned_date or now

            await stores.task_store.assign_sequence(
                task.task_id, seq, new_status, assigned, now
            )
            event_seq = await stores.event_store.get_next_task_seq(task.task_id)
            await stores.event_store.append_event(
                Event(
                    event_id=str(ULID()),
                    task_id=task.task_id,
                    task_seq=event_seq,
                    ts=now,
                    type=EventType.SEQUENCE_MIGRATED,
                    actor=ActorType.SYSTEM,
                    payload=SequenceMigratedPayload(
                        previous_status=task.status,
                        sequence_order=seq,
                    ).model_dump(),
                )
            )

        # 第二阶段：恢复原先进行中的任务为 pending
        if promote_task_id is not None:
            await stores.task_store.assign_sequence(
                promote_task_id,
                promote_seq,
                TaskStatus.PENDING,
                promote_assigned,
                now,
            )
        await stores.conn.commit()
    except Exception:
        await stores.conn.rollback()
        raise
    return promote_task_id


async def validate_sequential_integrity(
    stores: StoreGroup,
    user_id: str,
    goal_id: str,
) -> IntegrityReport:
    """检查编号缺口、多个活跃任务、有 queued 却无活跃任务"""
    user_id = validate_identifier(user_id, "user_id")
    goal_id = validate_identifier(goal_id, "goal_id")
    tasks = await stores.task_store.list_tasks_for_goal(user_id, goal_id)

    issues: list[str] = []
    for expected, task in enumerate(tasks, start=1):
        if task.sequence_order != expected:
            issues.append(
                f'Task "{task.content.title}" has sequence {task.sequence_order}, '
                f"expected {expected}"
            )

    active_count = sum(1 for t in tasks if t.status in ACTIVE_STATES)
    queued_count = sum(1 for t in tasks if t.status == TaskStatus.QUEUED)
    completed_count = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)

    if active_count > 1:
        issues.append(f"Found {active_count} active tasks, should have at most 1")
    if queued_count > 0 and active_count == 0:
        issues.append(f"Found {queued_count} queued tasks but no active task")

    return IntegrityReport(
        ok=not issues,
        issues=issues,
        total_tasks=len(tasks),
        active_tasks=active_count,
        queued_tasks=queued_count,
        completed_tasks=completed_count,
    )
