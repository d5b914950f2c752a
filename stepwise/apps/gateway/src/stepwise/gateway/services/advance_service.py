"""ManualAdvanceService -- 用户主动请求下一个任务

与调度器调用同一个 Gate，但使用 strict 模式：AlreadyActive、NoQueuedTasks、
GoalComplete 作为不同的错误原样上抛，由路由层区分提示。
"""

import structlog
from stepwise.core.gating import SequentialGate
from stepwise.core.models import ActorType, Task

log = structlog.get_logger()


class ManualAdvanceService:
    """手动推进服务"""

    def __init__(self, gate: SequentialGate) -> None:
        self._gate = gate

    async def request_next(self, user_id: str, goal_id: str) -> list[Task]:
        """激活下一个任务，返回单元素列表（与"今日活跃任务"接口对称）"""
        task = await self._gate.try_advance(
            user_id,
            goal_id,
            strict=True,
            actor=ActorType.USER,
        )
        if task is None:
            # strict 模式下 Gate 不会静默返回
            raise RuntimeError("strict advance returned no task")
        await log.ainfo(
            "manual_advance_succeeded",
            goal_id=goal_id,
            task_id=task.task_id,
            sequence_order=task.sequence_order,
        )
        return [task]
