"""目标路由

POST /api/goals: 创建目标 + backlog，并激活第一个任务（201）
GET /api/goals: 当前用户的目标列表
GET /api/goals/{goal_id}: 目标详情（含各状态任务数，不含 queued 任务本身）
GET /api/goals/{goal_id}/integrity: 顺序完整性报告
POST /api/goals/{goal_id}/migrate-sequences: 旧任务迁移
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from stepwise.core.models import TaskContent, TaskSpec

from ..deps import get_clock, get_gate, get_store_group, get_user_id
from ..serializers import goal_to_dict, task_to_dict
from ..services.goal_service import GoalService

router = APIRouter()


class TaskSpecRequest(BaseModel):
    """内容生成方产出的单个任务规格"""

    model_config = {"extra": "allow"}

    title: str = Field(min_length=1)
    description: str = ""
    phase: int | None = Field(default=None, ge=1)
    topics: list[str] = Field(default_factory=list)
    resources: list[dict[str, Any]] = Field(default_factory=list)

    def to_spec(self) -> TaskSpec:
        data = self.model_dump()
        phase = data.pop("phase", None)
        return TaskSpec(content=TaskContent(**data), phase=phase)


class CreateGoalRequest(BaseModel):
    title: str = Field(min_length=1)
    tasks: list[TaskSpecRequest] = Field(min_length=1)
    num_phases: int | None = Field(default=None, ge=1, le=24)


@router.post("/api/goals")
async def create_goal(
    body: CreateGoalRequest,
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    gate=Depends(get_gate),
    clock=Depends(get_clock),
):
    service = GoalService(store_group, gate, clock)
    goal, activated, backlog_size = await service.create_goal(
        user_id,
        body.title,
        [t.to_spec() for t in body.tasks],
        body.num_phases,
    )
    return JSONResponse(
        status_code=201,
        content={
            "goal": goal_to_dict(goal),
            "backlog_size": backlog_size,
            "active_task": task_to_dict(activated) if activated else None,
        },
    )


@router.get("/api/goals")
async def list_goals(
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    gate=Depends(get_gate),
    clock=Depends(get_clock),
):
    service = GoalService(store_group, gate, clock)
    goals = await service.list_goals(user_id)
    return {"goals": [goal_to_dict(g) for g in goals]}


@router.get("/api/goals/{goal_id}")
async def get_goal(
    goal_id: str,
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    gate=Depends(get_gate),
    clock=Depends(get_clock),
):
    service = GoalService(store_group, gate, clock)
    goal, active = await service.get_goal_detail(user_id, goal_id)
    return {
        "goal": goal_to_dict(goal),
        "active_task": task_to_dict(active) if active else None,
    }


@router.get("/api/goals/{goal_id}/integrity")
async def goal_integrity(
    goal_id: str,
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    gate=Depends(get_gate),
    clock=Depends(get_clock),
):
    service = GoalService(store_group, gate, clock)
    report = await service.integrity(user_id, goal_id)
    return report.model_dump()


@router.post("/api/goals/{goal_id}/migrate-sequences")
async def migrate_sequences(
    goal_id: str,
    user_id: str = Depends(get_user_id),
    store_group=Depends(get_store_group),
    gate=Depends(get_gate),
    clock=Depends(get_clock),
):
    service = GoalService(store_group, gate, clock)
    result = await service.migrate_sequences(user_id, goal_id)
    return result.model_dump()
