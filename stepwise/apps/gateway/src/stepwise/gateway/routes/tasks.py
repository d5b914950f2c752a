"""任务路由

GET /api/tasks/daily?goal_id=: 今日（UTC）被分配的可见任务
GET /api/tasks/active?goal_id=: 当前活跃任务（0 或 1 个）
GET /api/tasks/assigned?goal_id=: 全部可见任务
GET /api/tasks/by-date?goal_id=&date=YYYY-MM-DD: 指定日期被分配的可见任务
POST /api/tasks/request-next: 手动请求下一个任务
PATCH /api/tasks/{task_id}/status: 更新任务状态
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from starlette.responses import JSONResponse
from stepwise.core.exceptions import GoalCompleteError
from stepwise.core.models import TaskStatus

from ..deps import get_clock, get_gate, get_store_group, get_user_id
from ..errors import error_response
from ..serializers import task_to_dict
from ..services.advance_service import ManualAdvanceService
from ..services.task_service import TaskService

router = APIRouter()


class RequestNextBody(BaseModel):
    goal_id: str


class StatusUpdateBody(BaseModel):
    status: TaskStatus


def _tasks_payload(tasks) -> dict:
    return {"tasks": [task_to_dict(t) for t in tasks]}


@router.get("/api/tasks/daily")
async def daily_tasks(
    goal_id: str = Query(description="目标 ID"),
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    tasks = await TaskService(store_group, clock).daily_tasks(user_id, goal_id)
    return _tasks_payload(tasks)


@router.get("/api/tasks/active")
async def active_tasks(
    goal_id: str = Query(description="目标 ID"),
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    tasks = await TaskService(store_group, clock).active_tasks(user_id, goal_id)
    return _tasks_payload(tasks)


@router.get("/api/tasks/assigned")
async def assigned_tasks(
    goal_id: str = Query(description="目标 ID"),
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    tasks = await TaskService(store_group, clock).assigned_tasks(user_id, goal_id)
    return _tasks_payload(tasks)


@router.get("/api/tasks/by-date")
async def tasks_by_date(
    goal_id: str = Query(description="目标 ID"),
    day: date = Query(alias="date", description="YYYY-MM-DD（UTC）"),
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    tasks = await TaskService(store_group, clock).tasks_by_date(user_id, goal_id, day)
    return _tasks_payload(tasks)


@router.post("/api/tasks/request-next")
async def request_next(
    body: RequestNextBody,
    user_id: str = Depends(get_user_id),
    gate=Depends(get_gate),
):
    """手动推进

    - 200: 返回单元素任务列表
    - 200 + goal_complete: backlog 已全部完成
    - 409: 已有活跃任务 / backlog 耗尽但未全部完成
    """
    service = ManualAdvanceService(gate)
    try:
        tasks = await service.request_next(user_id, body.goal_id)
    except GoalCompleteError as e:
        return error_response(e)
    return {"goal_complete": False, **_tasks_payload(tasks)}


@router.patch("/api/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    body: StatusUpdateBody,
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    clock=Depends(get_clock),
):
    task = await TaskService(store_group, clock).update_status(user_id, task_id, body.status)
    return JSONResponse(status_code=200, content={"task": task_to_dict(task)})
