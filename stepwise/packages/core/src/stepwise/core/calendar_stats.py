"""CalendarStatsBuilder -- 整月逐日统计

只统计 assigned_date 落在当日且 status != queued 的任务；
没有任务的日期同样返回全 0 统计，调用方可无条件渲染整月网格。
"""

import calendar
from collections.abc import Iterable
from datetime import UTC, date

from .exceptions import InvalidRequestError
from .models.enums import TaskStatus
from .models.progress import DayStats
from .models.task import Task


def month_stats(tasks: Iterable[Task], year: int, month: int) -> dict[str, DayStats]:
    """计算 year 年 month 月（1-12）每一天的任务统计

    Returns:
        以 YYYY-MM-DD 为键、按日期升序的 DayStats 映射
    """
    if not 1 <= month <= 12:
        raise InvalidRequestError(f"month must be within 1..12, got {month}")
    if not 1 <= year <= 9999:
        raise InvalidRequestError(f"year is out of range: {year}")

    days_in_month = calendar.monthrange(year, month)[1]
    stats: dict[str, DayStats] = {}
    for day in range(1, days_in_month + 1):
        key = date(year, month, day).isoformat()
        stats[key] = DayStats(date=key)

    for task in tasks:
        if task.status == TaskStatus.QUEUED or task.assigned_date is None:
            continue
        assigned = task.assigned_date
        if assigned.tzinfo is not None:
            assigned = assigned.astimezone(UTC)
        day_stats = stats.get(assigned.date().isoformat())
        if day_stats is None:
            continue

        day_stats.total_tasks += 1
        if task.status == TaskStatus.COMPLETED:
            day_stats.completed_tasks += 1
        elif task.status == TaskStatus.IN_PROGRESS:
            day_stats.in_progress_tasks += 1
        elif task.status == TaskStatus.PENDING:
            day_stats.pending_tasks += 1

    return stats
