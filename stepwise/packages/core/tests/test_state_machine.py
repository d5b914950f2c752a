"""状态机流转单元测试

测试内容：
1. 合法流转通过
2. 非法流转被拒绝 / ensure_transition 抛出 InvalidTransitionError
3. 终态不可再流转
"""

import pytest
from stepwise.core.exceptions import InvalidTransitionError
from stepwise.core.models.enums import (
    ACTIVE_STATES,
    TERMINAL_STATES,
    VISIBLE_STATES,
    TaskStatus,
    validate_transition,
)
from stepwise.core.state_machine import ensure_transition


class TestStateMachineTransitions:
    """状态机流转验证"""

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.QUEUED, TaskStatus.PENDING),
            (TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
            (TaskStatus.PENDING, TaskStatus.COMPLETED),
            (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
            (TaskStatus.QUEUED, TaskStatus.CANCELLED),
            (TaskStatus.PENDING, TaskStatus.CANCELLED),
            (TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED),
        ],
    )
    def test_valid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        """合法流转应通过验证"""
        assert validate_transition(from_status, to_status) is True
        ensure_transition(from_status, to_status)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.QUEUED, TaskStatus.IN_PROGRESS),
            (TaskStatus.QUEUED, TaskStatus.COMPLETED),
            (TaskStatus.PENDING, TaskStatus.QUEUED),
            (TaskStatus.IN_PROGRESS, TaskStatus.PENDING),
            (TaskStatus.PENDING, TaskStatus.PENDING),
        ],
    )
    def test_invalid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        """非法流转应被拒绝"""
        assert validate_transition(from_status, to_status) is False
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition(from_status, to_status)
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_all_terminal_states_cannot_transition(self):
        """所有终态都不能再流转"""
        for terminal in TERMINAL_STATES:
            for target in TaskStatus:
                assert validate_transition(terminal, target) is False, (
                    f"终态 {terminal} 不应能流转到 {target}"
                )


class TestStateSets:
    """状态集合"""

    def test_queued_is_never_visible(self):
        assert TaskStatus.QUEUED not in VISIBLE_STATES
        assert VISIBLE_STATES == set(TaskStatus) - {TaskStatus.QUEUED}

    def test_active_states(self):
        assert ACTIVE_STATES == {TaskStatus.PENDING, TaskStatus.IN_PROGRESS}
        assert not ACTIVE_STATES & TERMINAL_STATES
