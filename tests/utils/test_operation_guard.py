import pytest

from packlauncher.utils.exception import OperationInProgressError
from packlauncher.utils.operation_guard import INSTALL, SELF_UPDATE, OperationGuard


class TestOperationGuard:
    """Tests for OperationGuard."""

    def test_second_hold_of_same_kind_is_refused(self) -> None:
        guard = OperationGuard()
        with guard.hold(INSTALL):
            assert guard.is_running(INSTALL) is True
            with pytest.raises(OperationInProgressError):
                with guard.hold(INSTALL):
                    pass
        assert guard.is_running(INSTALL) is False

    def test_kinds_are_independent(self) -> None:
        guard = OperationGuard()
        with guard.hold(INSTALL):
            with guard.hold(SELF_UPDATE):
                assert guard.is_running(SELF_UPDATE) is True

    def test_released_after_exception(self) -> None:
        guard = OperationGuard()
        with pytest.raises(RuntimeError):
            with guard.hold(INSTALL):
                raise RuntimeError("boom")

        with guard.hold(INSTALL):
            pass
