"""State transition validation for video records.

Lifecycle: NEW -> SUBMITTED -> AWAITING_TRANSCODE -> COMPLETE | FAILED | STUCK

COMPLETE, FAILED and STUCK are terminal. Only an operator resubmission
(``reset``) moves a record out of them again.
"""

from typing import FrozenSet, Set, Tuple

from cloudvideo.modules.video.models import ProcessingState, VideoRecord


class InvalidTransitionError(Exception):
    """Raised when a state change is not part of the lifecycle."""

    def __init__(self, from_state: ProcessingState, to_state: ProcessingState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition {from_state.value} -> {to_state.value}"
        )


TERMINAL_STATES: FrozenSet[ProcessingState] = frozenset({
    ProcessingState.COMPLETE,
    ProcessingState.FAILED,
    ProcessingState.STUCK,
})


_TRANSITIONS: Set[Tuple[ProcessingState, ProcessingState]] = {
    # Write path claims the submission
    (ProcessingState.NEW, ProcessingState.SUBMITTED),
    # Job handle persisted (direct submits skip the queue)
    (ProcessingState.NEW, ProcessingState.AWAITING_TRANSCODE),
    (ProcessingState.SUBMITTED, ProcessingState.AWAITING_TRANSCODE),
    # Poll outcomes
    (ProcessingState.AWAITING_TRANSCODE, ProcessingState.COMPLETE),
    (ProcessingState.AWAITING_TRANSCODE, ProcessingState.FAILED),
    (ProcessingState.AWAITING_TRANSCODE, ProcessingState.STUCK),
}


def is_terminal(state: ProcessingState) -> bool:
    """Check if a state is terminal."""
    return state in TERMINAL_STATES


def can_transition(from_state: ProcessingState, to_state: ProcessingState) -> bool:
    """Check if a state transition is legal.

    Staying in the same state is always allowed, so redelivered tasks
    (a second check of a completed job, a pending poll) are no-ops.
    """
    if from_state == to_state:
        return True

    if is_terminal(from_state):
        return False

    return (from_state, to_state) in _TRANSITIONS


def transition(record: VideoRecord, to_state: ProcessingState) -> None:
    """Move a record to ``to_state``.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
    """
    from_state = ProcessingState(record.state)
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    record.state = to_state.value


def reset(record: VideoRecord) -> None:
    """Return a record to NEW for an operator resubmission."""
    record.state = ProcessingState.NEW.value
    record.submitted = False
    record.check_attempts = 0
    record.error_message = None
