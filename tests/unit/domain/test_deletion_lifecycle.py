"""Tests for src/domain/services/deletion_lifecycle.py"""

import pytest

from domain.exceptions import InvalidStateTransitionError
from domain.models.deletion import DeletionState
from domain.services.deletion_lifecycle import DeletionLifecycleService


@pytest.fixture
def service():
    return DeletionLifecycleService()


class TestValidateTransition:
    @pytest.mark.parametrize(
        "current, new",
        [
            (DeletionState.INITIATED, DeletionState.IDENTITY_RESOLVED),
            (DeletionState.INITIATED, DeletionState.ABORTED),
            (DeletionState.IDENTITY_RESOLVED, DeletionState.DB_CASCADE_DONE),
            (DeletionState.IDENTITY_RESOLVED, DeletionState.ABORTED),
            (DeletionState.DB_CASCADE_DONE, DeletionState.EXTERNAL_ATTEMPTED),
            (DeletionState.EXTERNAL_ATTEMPTED, DeletionState.AUDITED),
        ],
    )
    def test_valid_transitions(self, service, current, new):
        assert service.validate_transition(current, new) is True

    @pytest.mark.parametrize(
        "current, new",
        [
            (DeletionState.INITIATED, DeletionState.DB_CASCADE_DONE),
            (DeletionState.DB_CASCADE_DONE, DeletionState.ABORTED),
            (DeletionState.EXTERNAL_ATTEMPTED, DeletionState.ABORTED),
            (DeletionState.AUDITED, DeletionState.INITIATED),
            (DeletionState.ABORTED, DeletionState.IDENTITY_RESOLVED),
        ],
    )
    def test_invalid_transitions(self, service, current, new):
        assert service.validate_transition(current, new) is False


class TestAdvance:
    def test_returns_new_state(self, service):
        assert service.advance(DeletionState.INITIATED, DeletionState.IDENTITY_RESOLVED) is (
            DeletionState.IDENTITY_RESOLVED
        )

    def test_raises_on_invalid(self, service):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            service.advance(DeletionState.AUDITED, DeletionState.ABORTED)
        assert exc_info.value.current_state == "AUDITED"
        assert exc_info.value.new_state == "ABORTED"


class TestTerminal:
    @pytest.mark.parametrize("state", [DeletionState.AUDITED, DeletionState.ABORTED])
    def test_terminal(self, service, state):
        assert service.is_terminal(state) is True

    def test_cascade_done_is_not_terminal(self, service):
        assert service.is_terminal(DeletionState.DB_CASCADE_DONE) is False
