"""仪表盘路由

GET /api/dashboard?goal_id=&days=: 窗口汇总、连续天数、徽章、提示
GET /api/dashboard/status-history?goal_id=&days=: 逐日完成百分比
GET /api/dashboard/calendar?year=&month=&goal_id=: 整月逐日统计
"""

from fastapi import APIRouter, Depends, Query
from stepwise.core.config import STATUS_HISTORY_DAYS, SUMMARY_DAYS

from ..deps import get_clock, get_store_group, get_user_id
from ..services.report_service import ReportService

router = APIRouter()


@router.get("/api/dashboard")
async def dashboard(
    goal_id: str | None = Query(default=None, description="不传则汇总全部目标"),
    days: int = Query(default=SUMMARY_DAYS, description="窗口天数"),
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    summary = await ReportService(store_group, clock).dashboard(user_id, goal_id, days)
    return summary.model_dump(mode="json")


@router.get("/api/dashboard/status-history")
async def status_history(
    goal_id: str | None = Query(default=None),
    days: int = Query(default=STATUS_HISTORY_DAYS),
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    points = await ReportService(store_group, clock).status_history(user_id, goal_id, days)
    return {"history": [p.model_dump() for p in points]}


@router.get("/api/dashboard/calendar")
async def calendar(
    year: int = Query(description="年份"),
    month: int = Query(description="月份 1-12"),
    goal_id: str | None = Query(default=None),
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    stats = await ReportService(store_group, clock).calendar(user_id, year, month, goal_id)
    return {
        "year": year,
        "month": month,
        "days": {key: value.model_dump() for key, value in stats.items()},
    }
