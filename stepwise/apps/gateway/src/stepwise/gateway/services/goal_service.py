"""GoalService -- 目标创建（含 backlog 写入）、查询、顺序运维"""

import structlog
from stepwise.core.backlog import populate_backlog
from stepwise.core.clock import Clock
from stepwise.core.config import GOAL_TITLE_MAX_LENGTH
from stepwise.core.exceptions import InvalidRequestError, NotFoundError
from stepwise.core.gating import SequentialGate
from stepwise.core.models import (
    Goal,
    GoalStatus,
    IntegrityReport,
    MigrationResult,
    Task,
    TaskSpec,
)
from stepwise.core.sequencing import (
    migrate_tasks_to_sequential,
    validate_sequential_integrity,
)
from stepwise.core.store import StoreGroup
from stepwise.core.validation import validate_identifier
from ulid import ULID

log = structlog.get_logger()


class GoalService:
    """目标业务服务"""

    def __init__(self, store_group: StoreGroup, gate: SequentialGate, clock: Clock) -> None:
        self._stores = store_group
        self._gate = gate
        self._clock = clock

    async def create_goal(
        self,
        user_id: str,
        title: str,
        specs: list[TaskSpec],
        num_phases: int | None = None,
    ) -> tuple[Goal, Task | None, int]:
        """创建目标并写入 backlog，激活第一个任务

        Returns:
            (goal, 被激活的任务, backlog 大小)
        """
        title = title.strip()
        if not title:
            raise InvalidRequestError("title is required")
        if len(title) > GOAL_TITLE_MAX_LENGTH:
            raise InvalidRequestError(
                f"title must be at most {GOAL_TITLE_MAX_LENGTH} characters"
            )
        if not specs:
            raise InvalidRequestError("A goal needs at least one task")

        now = self._clock.now()
        goal = Goal(
            goal_id=str(ULID()),
            user_id=user_id,
            title=title,
            status=GoalStatus.ACTIVE,
            current_phase=1,
            created_at=now,
            updated_at=now,
        )
        tasks, activated = await populate_backlog(
            self._stores, self._gate, goal, specs, now, num_phases
        )
        await log.ainfo("goal_created", goal_id=goal.goal_id, backlog_size=len(tasks))
        return goal, activated, len(tasks)

    async def list_goals(self, user_id: str) -> list[Goal]:
        return await self._stores.goal_store.list_goals_for_user(user_id)

    async def get_goal(self, user_id: str, goal_id: str) -> Goal:
        goal_id = validate_identifier(goal_id, "goal_id")
        goal = await self._stores.goal_store.get_goal(goal_id)
        if goal is None or goal.user_id != user_id:
            raise NotFoundError(f"Goal not found: {goal_id}")
        return goal

    async def get_goal_detail(self, user_id: str, goal_id: str) -> tuple[Goal, Task | None]:
        """目标与其当前活跃任务（没有时为 None）"""
        goal = await self.get_goal(user_id, goal_id)
        active = await self._stores.task_store.list_active_tasks(user_id, goal.goal_id)
        return goal, active[0] if active else None

    async def integrity(self, user_id: str, goal_id: str) -> IntegrityReport:
        await self.get_goal(user_id, goal_id)
        return await validate_sequential_integrity(self._stores, user_id, goal_id)

    async def migrate_sequences(self, user_id: str, goal_id: str) -> MigrationResult:
        await self.get_goal(user_id, goal_id)
        return await migrate_tasks_to_sequential(
            self._stores, self._gate, user_id, goal_id, self._clock.now()
        )
