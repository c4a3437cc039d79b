"""Property-based tests for video record state transitions.

**Feature: cloud-video-transcoder, Property 10: Processing State Machine**
"""

import pytest
from hypothesis import given, settings, strategies as st

from cloudvideo.modules.video.models import ProcessingState, VideoRecord
from cloudvideo.modules.video.state import (
    TERMINAL_STATES,
    InvalidTransitionError,
    can_transition,
    is_terminal,
    reset,
    transition,
)


state_strategy = st.sampled_from(list(ProcessingState))
terminal_strategy = st.sampled_from(sorted(TERMINAL_STATES, key=lambda s: s.value))


class TestProcessingStateMachine:
    """Property tests for the processing state machine.

    **Feature: cloud-video-transcoder, Property 10: Processing State Machine**
    """

    @given(state=state_strategy)
    @settings(max_examples=20)
    def test_staying_in_a_state_is_allowed(self, state: ProcessingState) -> None:
        """**Feature: cloud-video-transcoder, Property 10: Processing State Machine**"""
        assert can_transition(state, state)

    @given(from_state=terminal_strategy, to_state=state_strategy)
    @settings(max_examples=50)
    def test_terminal_states_are_final(
        self, from_state: ProcessingState, to_state: ProcessingState
    ) -> None:
        """**Feature: cloud-video-transcoder, Property 10: Processing State Machine**"""
        assert can_transition(from_state, to_state) == (from_state == to_state)

    @given(to_state=state_strategy)
    @settings(max_examples=20)
    def test_only_awaiting_transcode_reaches_outcomes(self, to_state: ProcessingState) -> None:
        """**Feature: cloud-video-transcoder, Property 10: Processing State Machine**"""
        if is_terminal(to_state):
            assert can_transition(ProcessingState.AWAITING_TRANSCODE, to_state)
            assert not can_transition(ProcessingState.NEW, to_state)
            assert not can_transition(ProcessingState.SUBMITTED, to_state)

    def test_happy_path(self) -> None:
        record = VideoRecord.new(source_path="clip.mov")

        for state in (
            ProcessingState.SUBMITTED,
            ProcessingState.AWAITING_TRANSCODE,
            ProcessingState.COMPLETE,
        ):
            transition(record, state)

        assert record.state == ProcessingState.COMPLETE.value

    def test_direct_submit_skips_submitted(self) -> None:
        assert can_transition(ProcessingState.NEW, ProcessingState.AWAITING_TRANSCODE)

    def test_no_going_back(self) -> None:
        assert not can_transition(ProcessingState.AWAITING_TRANSCODE, ProcessingState.NEW)
        assert not can_transition(ProcessingState.SUBMITTED, ProcessingState.NEW)

    def test_illegal_transition_raises_and_keeps_state(self) -> None:
        record = VideoRecord.new(source_path="clip.mov")
        record.state = ProcessingState.FAILED.value

        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(record, ProcessingState.AWAITING_TRANSCODE)

        assert exc_info.value.from_state == ProcessingState.FAILED
        assert record.state == ProcessingState.FAILED.value

    @given(state=terminal_strategy)
    @settings(max_examples=10)
    def test_reset_reopens_terminal_records(self, state: ProcessingState) -> None:
        """**Feature: cloud-video-transcoder, Property 10: Processing State Machine**"""
        record = VideoRecord.new(source_path="clip.mov")
        record.state = state.value
        record.submitted = True
        record.check_attempts = 5
        record.error_message = "failed"

        reset(record)

        assert record.state == ProcessingState.NEW.value
        assert record.submitted is False
        assert record.check_attempts == 0
        assert record.error_message is None
        assert can_transition(ProcessingState(record.state), ProcessingState.SUBMITTED)
