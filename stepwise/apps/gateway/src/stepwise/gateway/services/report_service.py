"""ReportService -- 仪表盘、完成率历史与月历统计

只把可见任务交给纯函数聚合器，queued 任务不参与任何统计。
仪表盘与完成率历史只统计 pending / in_progress / completed，cancelled 不计入。
"""

from stepwise.core import calendar_stats, progress
from stepwise.core.clock import Clock
from stepwise.core.config import MAX_SUMMARY_DAYS
from stepwise.core.exceptions import InvalidRequestError, NotFoundError
from stepwise.core.models import (
    DashboardSummary,
    DayStats,
    StatusHistoryPoint,
    Task,
    TaskStatus,
)
from stepwise.core.store import StoreGroup
from stepwise.core.validation import validate_identifier

# 参与进度统计的状态
PROGRESS_STATES = {
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
}


class ReportService:
    """报表服务（只读）"""

    def __init__(self, store_group: StoreGroup, clock: Clock) -> None:
        self._stores = store_group
        self._clock = clock

    async def _visible_tasks(self, user_id: str, goal_id: str | None) -> list[Task]:
        if goal_id is not None:
            goal_id = validate_identifier(goal_id, "goal_id")
            goal = await self._stores.goal_store.get_goal(goal_id)
            if goal is None or goal.user_id != user_id:
                raise NotFoundError(f"Goal not found: {goal_id}")
        return await self._stores.task_store.list_visible_tasks(user_id, goal_id)

    async def _progress_tasks(self, user_id: str, goal_id: str | None) -> list[Task]:
        tasks = await self._visible_tasks(user_id, goal_id)
        return [t for t in tasks if t.status in PROGRESS_STATES]

    @staticmethod
    def _check_days(days: int) -> None:
        if not 1 <= days <= MAX_SUMMARY_DAYS:
            raise InvalidRequestError(f"days must be within 1..{MAX_SUMMARY_DAYS}")

    async def dashboard(
        self,
        user_id: str,
        goal_id: str | None,
        days: int,
    ) -> DashboardSummary:
        self._check_days(days)
        tasks = await self._progress_tasks(user_id, goal_id)
        return progress.build_dashboard_summary(tasks, days, self._clock.now())

    async def status_history(
        self,
        user_id: str,
        goal_id: str | None,
        days: int,
    ) -> list[StatusHistoryPoint]:
        self._check_days(days)
        tasks = await self._progress_tasks(user_id, goal_id)
        return progress.status_history(tasks, days, self._clock.now())

    async def calendar(
        self,
        user_id: str,
        year: int,
        month: int,
        goal_id: str | None = None,
    ) -> dict[str, DayStats]:
        tasks = await self._visible_tasks(user_id, goal_id)
        return calendar_stats.month_stats(tasks, year, month)
