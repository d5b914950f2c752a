"""SequentialGate 测试

测试内容：
1. 场景 A：已有 pending 任务时 strict 抛 AlreadyActive，lenient no-op，不修改任何任务
2. 场景 B：完成任务 1 后推进，任务 2 变为 pending 且带新的 assigned_date
3. 场景 C：全部完成时返回 GoalComplete 并将 goal 标记 completed
4. 幂等：连续两次推进，第二次为 no-op
5. 并发：多个调用方同时推进，只有一个任务被激活
6. 错误分类：NotFound / 校验失败 / NoQueuedTasks / TransientStoreError
"""

import asyncio
from datetime import timedelta

import aiosqlite
import pytest
from stepwise.core.exceptions import (
    AlreadyActiveError,
    GoalCompleteError,
    InvalidRequestError,
    NoQueuedTasksError,
    NotFoundError,
    TransientStoreError,
)
from stepwise.core.gating import SequentialGate
from stepwise.core.models import ACTIVE_STATES, EventType, GoalStatus, TaskStatus


async def _complete(store_group, task_id: str, clock) -> None:
    task = await store_group.task_store.get_task(task_id)
    await store_group.task_store.update_task_status(
        task_id, TaskStatus.COMPLETED, task.status, clock.now()
    )
    await store_group.conn.commit()


async def _statuses(store_group, goal) -> list[TaskStatus]:
    tasks = await store_group.task_store.list_tasks_for_goal(goal.user_id, goal.goal_id)
    return [t.status for t in tasks]


async def _active_count(store_group, goal) -> int:
    return sum(1 for s in await _statuses(store_group, goal) if s in ACTIVE_STATES)


class TestScenarioAlreadyActive:
    """场景 A：任务 1 已 pending"""

    async def test_backlog_starts_with_first_task_pending(self, store_group, seed_goal):
        goal, _ = await seed_goal(n=5)
        assert await _statuses(store_group, goal) == [
            TaskStatus.PENDING,
            TaskStatus.QUEUED,
            TaskStatus.QUEUED,
            TaskStatus.QUEUED,
            TaskStatus.QUEUED,
        ]

    async def test_strict_raises_already_active(self, store_group, gate, seed_goal):
        goal, _ = await seed_goal(n=5)
        before = await store_group.task_store.list_tasks_for_goal(goal.user_id, goal.goal_id)

        with pytest.raises(AlreadyActiveError) as exc_info:
            await gate.try_advance(goal.user_id, goal.goal_id, strict=True)
        assert exc_info.value.recoverable is True

        after = await store_group.task_store.list_tasks_for_goal(goal.user_id, goal.goal_id)
        assert [t.model_dump() for t in after] == [t.model_dump() for t in before]

    async def test_lenient_is_noop(self, store_group, gate, seed_goal):
        goal, _ = await seed_goal(n=5)
        result = await gate.try_advance(goal.user_id, goal.goal_id, strict=False)
        assert result is None
        assert await _active_count(store_group, goal) == 1


class TestScenarioAdvance:
    """场景 B：完成后推进下一个"""

    async def test_next_task_becomes_pending(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=5)
        first_assigned = (await store_group.task_store.get_task(tasks[0].task_id)).assigned_date

        clock.advance(days=1)
        await _complete(store_group, tasks[0].task_id, clock)
        clock.advance(hours=1)

        activated = await gate.try_advance(goal.user_id, goal.goal_id, strict=True)
        assert activated is not None
        assert activated.sequence_order == 2
        assert activated.status == TaskStatus.PENDING
        assert activated.assigned_date == clock.now()
        assert activated.scheduled_date == clock.now()
        assert activated.assigned_date > first_assigned

        first = await store_group.task_store.get_task(tasks[0].task_id)
        assert first.status == TaskStatus.COMPLETED

    async def test_activation_appends_audit_event(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=2)
        await _complete(store_group, tasks[0].task_id, clock)
        await gate.try_advance(goal.user_id, goal.goal_id, strict=True)

        events = await store_group.event_store.get_events_for_task(tasks[1].task_id)
        assert [e.type for e in events] == [EventType.BACKLOG_CREATED, EventType.TASK_ASSIGNED]
        assert events[-1].payload["mode"] == "strict"
        assert events[-1].payload["sequence_order"] == 2

    async def test_can_advance(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=2)
        assert await gate.can_advance(goal.user_id, goal.goal_id) is False
        await _complete(store_group, tasks[0].task_id, clock)
        assert await gate.can_advance(goal.user_id, goal.goal_id) is True


class TestScenarioGoalComplete:
    """场景 C：全部完成"""

    async def test_goal_complete_marks_goal(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=5)
        for task in tasks:
            await gate.try_advance(goal.user_id, goal.goal_id, strict=False)
            await _complete(store_group, task.task_id, clock)
            clock.advance(days=1)

        with pytest.raises(GoalCompleteError):
            await gate.try_advance(goal.user_id, goal.goal_id, strict=True)

        stored = await store_group.goal_store.get_goal(goal.goal_id)
        assert stored.status == GoalStatus.COMPLETED
        assert stored.completed_at == clock.now()
        assert await _statuses(store_group, goal) == [TaskStatus.COMPLETED] * 5

    async def test_goal_complete_in_lenient_mode(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=1)
        await _complete(store_group, tasks[0].task_id, clock)
        with pytest.raises(GoalCompleteError):
            await gate.try_advance(goal.user_id, goal.goal_id, strict=False)

    async def test_no_queued_tasks_when_backlog_has_cancelled(
        self, store_group, gate, seed_goal, clock
    ):
        """backlog 耗尽但有未完成（cancelled）任务 -> NoQueuedTasks，goal 保持 active"""
        goal, tasks = await seed_goal(n=2)
        await _complete(store_group, tasks[0].task_id, clock)
        await gate.try_advance(goal.user_id, goal.goal_id, strict=True)
        await store_group.task_store.update_task_status(
            tasks[1].task_id, TaskStatus.CANCELLED, TaskStatus.PENDING, clock.now()
        )
        await store_group.conn.commit()

        with pytest.raises(NoQueuedTasksError):
            await gate.try_advance(goal.user_id, goal.goal_id, strict=True)
        stored = await store_group.goal_store.get_goal(goal.goal_id)
        assert stored.status == GoalStatus.ACTIVE


class TestIdempotence:
    """幂等"""

    async def test_second_call_is_noop(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=3)
        await _complete(store_group, tasks[0].task_id, clock)

        first = await gate.try_advance(goal.user_id, goal.goal_id, strict=False)
        second = await gate.try_advance(goal.user_id, goal.goal_id, strict=False)

        assert first is not None
        assert first.sequence_order == 2
        assert second is None
        assert await _active_count(store_group, goal) == 1


class TestConcurrency:
    """并发推进只激活一个任务"""

    async def test_concurrent_callers_activate_once(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=5)
        await _complete(store_group, tasks[0].task_id, clock)

        results = await asyncio.gather(
            *(gate.try_advance(goal.user_id, goal.goal_id, strict=False) for _ in range(10))
        )
        activated = [r for r in results if r is not None]
        assert len(activated) == 1
        assert activated[0].sequence_order == 2
        assert await _active_count(store_group, goal) == 1

    async def test_independent_gates_activate_once(self, store_group, seed_goal, clock):
        """不共享进程内锁的两个 Gate（如调度器与另一个 worker）同样只激活一个"""
        goal, tasks = await seed_goal(n=5)
        await _complete(store_group, tasks[0].task_id, clock)
        gates = [SequentialGate(store_group, clock) for _ in range(4)]

        results = await asyncio.gather(
            *(g.try_advance(goal.user_id, goal.goal_id, strict=True) for g in gates),
            return_exceptions=True,
        )
        activated = [r for r in results if r is not None and not isinstance(r, Exception)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(activated) == 1
        assert all(isinstance(e, AlreadyActiveError) for e in errors)
        assert await _active_count(store_group, goal) == 1

    async def test_scheduler_and_manual_race(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=3)
        await _complete(store_group, tasks[0].task_id, clock)

        lenient, strict = await asyncio.gather(
            gate.try_advance(goal.user_id, goal.goal_id, strict=False),
            gate.try_advance(goal.user_id, goal.goal_id, strict=True),
            return_exceptions=True,
        )
        outcomes = [lenient, strict]
        assert sum(1 for o in outcomes if o is not None and not isinstance(o, Exception)) == 1
        assert await _active_count(store_group, goal) == 1

    async def test_invariant_holds_across_many_days(self, store_group, gate, seed_goal, clock):
        goal, _ = await seed_goal(n=6)
        for _ in range(8):
            clock.advance(days=1)
            active = await store_group.task_store.list_active_tasks(goal.user_id, goal.goal_id)
            if active:
                await _complete(store_group, active[0].task_id, clock)
            results = await asyncio.gather(
                gate.try_advance(goal.user_id, goal.goal_id, strict=False),
                gate.try_advance(goal.user_id, goal.goal_id, strict=False),
                return_exceptions=True,
            )
            if any(isinstance(r, GoalCompleteError) for r in results):
                break
            assert not any(isinstance(r, Exception) for r in results)
            assert await _active_count(store_group, goal) <= 1


class TestGateErrors:
    """错误分类"""

    async def test_unknown_goal(self, gate):
        with pytest.raises(NotFoundError):
            await gate.try_advance("user-1", "missing-goal", strict=True)

    async def test_goal_of_other_user(self, gate, seed_goal):
        goal, _ = await seed_goal(user_id="owner")
        with pytest.raises(NotFoundError):
            await gate.try_advance("intruder", goal.goal_id, strict=True)

    @pytest.mark.parametrize("bad_id", ["", "   ", "has space", "x" * 200, "semi;colon"])
    async def test_malformed_identifier_rejected(self, gate, bad_id):
        with pytest.raises(InvalidRequestError):
            await gate.try_advance(bad_id, "goal-1", strict=True)

    async def test_store_failure_is_transient(self, store_group, gate, seed_goal, monkeypatch):
        goal, _ = await seed_goal(n=2)

        async def broken(*args, **kwargs):
            raise aiosqlite.OperationalError("database is locked")

        monkeypatch.setattr(store_group.task_store, "has_active_task", broken)
        with pytest.raises(TransientStoreError) as exc_info:
            await gate.try_advance(goal.user_id, goal.goal_id, strict=True)
        assert exc_info.value.recoverable is True

    async def test_assigned_date_moves_with_clock(self, store_group, gate, seed_goal, clock):
        goal, tasks = await seed_goal(n=2)
        await _complete(store_group, tasks[0].task_id, clock)
        clock.advance(days=2)
        task = await gate.try_advance(goal.user_id, goal.goal_id, strict=True)
        assert task.assigned_date - tasks[0].created_at == timedelta(days=2)
