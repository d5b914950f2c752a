"""进度聚合结果模型

全部为派生数据，纯粹由 Task 历史计算得出，不直接持久化。
"""

from datetime import date

from pydantic import BaseModel, Field

from .enums import BadgeType


class DaySummary(BaseModel):
    """单日进度快照"""

    date: date
    label: str = Field(description="展示标签，如 'Mon 6'")
    backlog_count: int = Field(ge=0, description="截至当日的累计 backlog")
    completed_count: int = Field(ge=0, description="当日完成数")


class Badge(BaseModel):
    """成就徽章"""

    type: BadgeType
    message: str
    icon: str


class DayStats(BaseModel):
    """日历单日统计"""

    date: str = Field(description="YYYY-MM-DD")
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    pending_tasks: int = 0


class StatusHistoryPoint(BaseModel):
    """完成率历史中的一个点"""

    date: str = Field(description="YYYY-MM-DD")
    value: int = Field(ge=0, le=100, description="当日完成百分比")


class DashboardSummary(BaseModel):
    """仪表盘汇总"""

    total_tasks: int
    completed_tasks: int
    completion_rate: int = Field(description="完成率（四舍五入百分比）")
    streak: int
    badges: list[Badge] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    best_day: str
    days: list[DaySummary] = Field(default_factory=list)
