"""TaskStateMachine -- 所有写路径在发出写操作前都要经过这里

纯校验逻辑，不做任何 I/O。
"""

from .exceptions import InvalidTransitionError
from .models.enums import TaskStatus, validate_transition


def ensure_transition(from_status: TaskStatus, to_status: TaskStatus) -> None:
    """校验流转，非法时抛出 InvalidTransitionError"""
    if not validate_transition(from_status, to_status):
        raise InvalidTransitionError(from_status.value, to_status.value)
