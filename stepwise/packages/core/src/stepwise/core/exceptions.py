"""Stepwise 异常体系

所有领域错误继承 StepwiseError，携带稳定的 code 供 API 层映射。
调度器按 goal 吞掉并记录这些错误；手动推进将其原样上抛给调用方。
"""


class StepwiseError(Exception):
    """领域错误基类"""

    code: str = "STEPWISE_ERROR"

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过等待或重试恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class InvalidRequestError(StepwiseError):
    """标识符格式错误等输入校验失败，在访问存储前拒绝"""

    code = "VALIDATION_ERROR"


class NotFoundError(StepwiseError):
    """goal 或 task 不存在或不属于调用者"""

    code = "NOT_FOUND"


class AlreadyActiveError(StepwiseError):
    """已存在 pending / in_progress 任务，用户应先完成当前任务"""

    code = "ALREADY_ACTIVE"

    def __init__(self, goal_id: str) -> None:
        super().__init__(
            "You must complete your current task before requesting a new one",
            recoverable=True,
        )
        self.goal_id = goal_id


class NoQueuedTasksError(StepwiseError):
    """backlog 已耗尽但 goal 未全部完成（数据不一致）"""

    code = "NO_QUEUED_TASKS"

    def __init__(self, goal_id: str) -> None:
        super().__init__(
            "No more tasks available in the sequence for this goal",
        )
        self.goal_id = goal_id


class GoalCompleteError(StepwiseError):
    """backlog 已耗尽且全部完成；对终端用户不是错误，仅用于区分提示文案"""

    code = "GOAL_COMPLETE"

    def __init__(self, goal_id: str) -> None:
        super().__init__(
            "Congratulations! All tasks for this goal are completed",
        )
        self.goal_id = goal_id


class InvalidTransitionError(StepwiseError):
    """状态机拒绝的流转"""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(f"Cannot transition task from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class TransientStoreError(StepwiseError):
    """底层存储操作失败；tryAdvance 幂等，可整体重试"""

    code = "TRANSIENT_STORE_ERROR"

    def __init__(self, operation: str, original_error: Exception) -> None:
        super().__init__(
            f"Store operation {operation} failed: {original_error}",
            recoverable=True,
        )
        self.operation = operation
        self.original_error = original_error
