"""DailyScheduler -- 每个 UTC 日触发一次，为所有 active goal 推进任务

显式构造、显式 start()/stop()，时钟注入以便测试中模拟"过了一天"。
单个 goal 失败只记录日志，不影响其余 goal。
"""

import asyncio
import contextlib
from datetime import datetime, timedelta

import structlog

from .clock import Clock, SystemClock
from .exceptions import GoalCompleteError
from .gating import SequentialGate
from .models.enums import ActorType, GoalStatus
from .models.reports import DailyRunReport
from .store.goal_store import SqliteGoalStore

log = structlog.get_logger()


class DailyScheduler:
    """每日推进调度器"""

    def __init__(
        self,
        gate: SequentialGate,
        goal_store: SqliteGoalStore,
        clock: Clock | None = None,
        fire_hour: int = 0,
    ) -> None:
        if not 0 <= fire_hour <= 23:
            raise ValueError(f"fire_hour must be within 0..23, got {fire_hour}")
        self._gate = gate
        self._goal_store = goal_store
        self._clock = clock or SystemClock()
        self._fire_hour = fire_hour
        self._task: asyncio.Task | None = None
        self._last_run_date: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_run_date(self) -> str | None:
        return self._last_run_date

    def start(self) -> None:
        """启动后台循环；重复调用无副作用"""
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name="stepwise-daily-scheduler")
        log.info("daily_scheduler_started", fire_hour=self._fire_hour)

    async def stop(self) -> None:
        """停止后台循环并等待其退出"""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        log.info("daily_scheduler_stopped")

    def seconds_until_next_fire(self, now: datetime | None = None) -> float:
        """距离下一次触发（UTC fire_hour:00）的秒数"""
        now = now or self._clock.now()
        target = now.replace(hour=self._fire_hour, minute=0, second=0, microsecond=0)
        if target <= now:
            target += timedelta(days=1)
        return (target - now).total_seconds()

    async def run_once(self, *, force: bool = False) -> DailyRunReport | None:
        """对所有 active goal 执行一次推进

        同一进程内同一 UTC 日第二次触发会被跳过（force=True 除外）。

        Returns:
            运行统计；被跳过时返回 None
        """
        run_date = self._clock.now().date().isoformat()
        if not force and self._last_run_date == run_date:
            log.info("daily_advance_already_ran", run_date=run_date)
            return None
        self._last_run_date = run_date

        goals = await self._goal_store.list_goals_by_status(GoalStatus.ACTIVE)
        report = DailyRunReport(run_date=run_date, goals=len(goals))
        log.info("daily_advance_started", run_date=run_date, goals=len(goals))

        for goal in goals:
            try:
                task = await self._gate.try_advance(
                    goal.user_id,
                    goal.goal_id,
                    strict=False,
                    actor=ActorType.SCHEDULER,
                )
            except GoalCompleteError:
                report.skipped += 1
                log.info("daily_advance_goal_complete", goal_id=goal.goal_id)
                continue
            except Exception as e:
                report.failed += 1
                log.warning(
                    "daily_advance_goal_failed",
                    goal_id=goal.goal_id,
                    user_id=goal.user_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                continue

            if task is None:
                report.skipped += 1
            else:
                report.advanced += 1

        log.info(
            "daily_advance_completed",
            run_date=run_date,
            goals=report.goals,
            advanced=report.advanced,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report

    async def _run_loop(self) -> None:
        while True:
            delay = self.seconds_until_next_fire()
            log.debug("daily_scheduler_sleeping", seconds=delay)
            await self._clock.sleep(delay)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # 加载 goal 列表失败等整体错误：记录后等待下一次触发
                log.error(
                    "daily_advance_run_failed",
                    error_type=type(e).__name__,
                    error=str(e),
                )
