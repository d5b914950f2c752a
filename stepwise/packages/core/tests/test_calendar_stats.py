"""CalendarStatsBuilder 测试"""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from stepwise.core.calendar_stats import month_stats
from stepwise.core.exceptions import InvalidRequestError
from stepwise.core.models import TaskStatus

MAR_5 = datetime(2026, 3, 5, 10, 0, tzinfo=UTC)


def test_queued_tasks_are_not_counted(make_task):
    """同一天 3 个 queued + 1 个 pending，只计 1 个"""
    tasks = [make_task(status=TaskStatus.QUEUED, created_at=MAR_5) for _ in range(3)]
    # queued 任务即使带了 assigned_date 也不计
    tasks.append(make_task(status=TaskStatus.QUEUED, assigned_date=MAR_5))
    tasks.append(make_task(status=TaskStatus.PENDING, assigned_date=MAR_5))

    stats = month_stats(tasks, 2026, 3)
    day = stats["2026-03-05"]
    assert day.total_tasks == 1
    assert day.pending_tasks == 1
    assert day.completed_tasks == 0


def test_every_day_present_and_zero_filled():
    stats = month_stats([], 2026, 2)
    assert len(stats) == 28
    assert list(stats)[0] == "2026-02-01"
    assert list(stats)[-1] == "2026-02-28"
    assert all(s.total_tasks == 0 for s in stats.values())


def test_leap_february():
    assert len(month_stats([], 2028, 2)) == 29


def test_counts_by_status(make_task):
    tasks = [
        make_task(status=TaskStatus.COMPLETED, assigned_date=MAR_5),
        make_task(status=TaskStatus.COMPLETED, assigned_date=MAR_5),
        make_task(status=TaskStatus.IN_PROGRESS, assigned_date=MAR_5),
        make_task(status=TaskStatus.CANCELLED, assigned_date=MAR_5),
        make_task(status=TaskStatus.PENDING, assigned_date=MAR_5 + timedelta(days=1)),
    ]
    stats = month_stats(tasks, 2026, 3)

    day = stats["2026-03-05"]
    assert (day.total_tasks, day.completed_tasks, day.in_progress_tasks) == (4, 2, 1)
    assert day.pending_tasks == 0
    assert stats["2026-03-06"].pending_tasks == 1


def test_other_months_ignored(make_task):
    tasks = [make_task(assigned_date=datetime(2026, 4, 1, 0, 0, tzinfo=UTC))]
    stats = month_stats(tasks, 2026, 3)
    assert sum(s.total_tasks for s in stats.values()) == 0


def test_day_boundary_is_utc(make_task):
    """UTC+8 的 3 月 6 日 01:00 实为 UTC 3 月 5 日"""
    local = datetime(2026, 3, 6, 1, 0, tzinfo=timezone(timedelta(hours=8)))
    stats = month_stats([make_task(assigned_date=local)], 2026, 3)
    assert stats["2026-03-05"].total_tasks == 1
    assert stats["2026-03-06"].total_tasks == 0


@pytest.mark.parametrize("year,month", [(2026, 0), (2026, 13), (0, 5), (10000, 1)])
def test_invalid_month_or_year(year, month):
    with pytest.raises(InvalidRequestError):
        month_stats([], year, month)
