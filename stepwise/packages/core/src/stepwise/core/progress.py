"""ProgressAggregator -- 由任务历史计算逐日 backlog / 完成数、连续天数与徽章

纯函数，不做 I/O，不对脏数据抛出领域错误：一律钳制为非负并降级为 0。
所有日期边界按 UTC 计算。

backlog(day) 为累计值：截至当日结束创建的任务数减去截至当日结束完成的任务数，
仍未完成的任务会在其创建之后的每一天都计入 backlog。
"""

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime, time, timedelta

from .models.enums import BadgeType, TaskStatus
from .models.progress import Badge, DashboardSummary, DaySummary, StatusHistoryPoint
from .models.task import Task

# 徽章阈值
STREAK_FIRE_DAYS = 5
STREAK_WEEK_DAYS = 7
MILESTONE_50 = 50
MILESTONE_100 = 100
EFFICIENCY_RATIO = 0.8

LOW_COMPLETION_RATE = 50


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=UTC)


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def day_label(day: date) -> str:
    """展示标签，如 'Mon 6'"""
    return f"{day.strftime('%a')} {day.day}"


def _as_date(reference: date | datetime) -> date:
    if isinstance(reference, datetime):
        return _to_utc(reference).date()
    return reference


def past_n_days_summary(
    tasks: Iterable[Task],
    n: int,
    reference_date: date | datetime,
) -> list[DaySummary]:
    """最近 n 个日历日（由旧到新，含 reference_date 当天）的逐日汇总

    Args:
        tasks: 任务历史（调用方负责只传入可见任务）
        n: 窗口天数，<= 0 时返回空列表
        reference_date: 窗口最后一天

    Returns:
        n 条 DaySummary
    """
    if n <= 0:
        return []

    ref_day = _as_date(reference_date)
    created: list[datetime] = []
    completed: list[datetime] = []
    for task in tasks:
        created_at = _to_utc(task.created_at)
        if created_at is not None:
            created.append(created_at)
        completion = _to_utc(task.completion_time)
        if completion is not None:
            completed.append(completion)

    summaries: list[DaySummary] = []
    for offset in range(n - 1, -1, -1):
        day = ref_day - timedelta(days=offset)
        start, end = _start_of_day(day), _end_of_day(day)

        created_so_far = sum(1 for ts in created if ts <= end)
        completed_so_far = sum(1 for ts in completed if ts <= end)
        completed_today = sum(1 for ts in completed if start <= ts <= end)

        summaries.append(
            DaySummary(
                date=day,
                label=day_label(day),
                backlog_count=max(0, created_so_far - completed_so_far),
                completed_count=max(0, completed_today),
            )
        )
    return summaries


def streak(summaries: Sequence[DaySummary]) -> int:
    """从最近一天向前数连续有完成的天数（只算末尾这一段）"""
    count = 0
    for summary in reversed(summaries):
        if summary.completed_count > 0:
            count += 1
        else:
            break
    return count


def badges(completed_total: int, streak_days: int, total_tasks: int) -> list[Badge]:
    """按阈值独立判定，满足的徽章同时授予"""
    result: list[Badge] = []
    if streak_days >= STREAK_FIRE_DAYS:
        result.append(
            Badge(type=BadgeType.STREAK, message=f"{streak_days}-day streak!", icon="🔥")
        )
    if completed_total >= MILESTONE_100:
        result.append(
            Badge(type=BadgeType.MILESTONE, message="100 Tasks Completed!", icon="🏆")
        )
    if completed_total >= MILESTONE_50:
        result.append(
            Badge(type=BadgeType.MILESTONE, message="50 Tasks Completed!", icon="🎯")
        )
    if streak_days >= STREAK_WEEK_DAYS:
        result.append(Badge(type=BadgeType.STREAK, message="Week Warrior!", icon="⚡"))
    if total_tasks > 0 and completed_total / total_tasks >= EFFICIENCY_RATIO:
        result.append(
            Badge(type=BadgeType.EFFICIENCY, message="80%+ Completion Rate!", icon="📈")
        )
    return result


def best_day(summaries: Sequence[DaySummary]) -> str:
    """完成数最多的一天的标签；并列取最早，无完成时为 'N/A'"""
    best: DaySummary | None = None
    for summary in summaries:
        if summary.completed_count <= 0:
            continue
        if best is None or summary.completed_count > best.completed_count:
            best = summary
    return best.label if best is not None else "N/A"


def completion_rate(completed_total: int, total_tasks: int) -> int:
    """完成率，四舍五入到整数百分比"""
    if total_tasks <= 0:
        return 0
    rate = completed_total / total_tasks * 100
    return max(0, min(100, int(rate + 0.5)))


def insights(rate: int, streak_days: int) -> list[str]:
    result: list[str] = []
    if rate < LOW_COMPLETION_RATE:
        result.append(
            "Your completion rate is below 50%. Try breaking tasks into smaller chunks!"
        )
    if streak_days == 0:
        result.append("Start your productivity streak today! Complete at least one task.")
    return result


def build_dashboard_summary(
    tasks: Sequence[Task],
    n: int,
    reference_date: date | datetime,
) -> DashboardSummary:
    """组装仪表盘汇总：窗口汇总、总数、完成率、连续天数、徽章、最佳日与提示"""
    days = past_n_days_summary(tasks, n, reference_date)
    total = len(tasks)
    completed_total = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    current_streak = streak(days)
    rate = completion_rate(completed_total, total)
    return DashboardSummary(
        total_tasks=total,
        completed_tasks=completed_total,
        completion_rate=rate,
        streak=current_streak,
        badges=badges(completed_total, current_streak, total),
        insights=insights(rate, current_streak),
        best_day=best_day(days),
        days=days,
    )


def status_history(
    tasks: Iterable[Task],
    n: int,
    reference_date: date | datetime,
) -> list[StatusHistoryPoint]:
    """最近 n 天的逐日完成百分比

    分母：当日结束前创建、且没有在当日开始前完成的任务；
    分子：当日完成的任务。
    """
    if n <= 0:
        return []

    ref_day = _as_date(reference_date)
    rows = [(_to_utc(t.created_at), _to_utc(t.completion_time)) for t in tasks]

    points: list[StatusHistoryPoint] = []
    for offset in range(n - 1, -1, -1):
        day = ref_day - timedelta(days=offset)
        start, end = _start_of_day(day), _end_of_day(day)

        denominator = 0
        numerator = 0
        for created_at, completed_at in rows:
            if created_at is None or created_at > end:
                continue
            if completed_at is not None and completed_at < start:
                continue
            denominator += 1
            if completed_at is not None and start <= completed_at <= end:
                numerator += 1

        value = 0
        if denominator > 0:
            value = max(0, min(100, int(numerator / denominator * 100 + 0.5)))
        points.append(StatusHistoryPoint(date=day.isoformat(), value=value))
    return points
