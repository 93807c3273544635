from __future__ import annotations

from domain.exceptions import InvalidStateTransitionError
from domain.models.deletion import DeletionState


VALID_TRANSITIONS: dict[DeletionState, list[DeletionState]] = {
    DeletionState.INITIATED: [DeletionState.IDENTITY_RESOLVED, DeletionState.ABORTED],
    DeletionState.IDENTITY_RESOLVED: [DeletionState.DB_CASCADE_DONE, DeletionState.ABORTED],
    DeletionState.DB_CASCADE_DONE: [DeletionState.EXTERNAL_ATTEMPTED],
    DeletionState.EXTERNAL_ATTEMPTED: [DeletionState.AUDITED],
    DeletionState.AUDITED: [],
    DeletionState.ABORTED: [],
}

TERMINAL_STATES: frozenset[DeletionState] = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


class DeletionLifecycleService:

    def validate_transition(
        self,
        current_state: DeletionState,
        new_state: DeletionState,
    ) -> bool:
        allowed = VALID_TRANSITIONS.get(current_state, [])
        return new_state in allowed

    def advance(
        self,
        current_state: DeletionState,
        new_state: DeletionState,
    ) -> DeletionState:
        if not self.validate_transition(current_state, new_state):
            raise InvalidStateTransitionError(current_state.value, new_state.value)
        return new_state

    def is_terminal(self, state: DeletionState) -> bool:
        return state in TERMINAL_STATES
