"""Tests for the Guided Session State Machine.

Tests the 8-state FSM for guided playback.
"""

import pytest

from yogaflow.exceptions import SessionStateError
from yogaflow.orchestrator.state_machine import (
    ACTIVE_STATES,
    VALID_TRANSITIONS,
    GuidedStateMachine,
    OrchestratorState,
    StateTransition,
)


class TestOrchestratorState:
    """Tests for OrchestratorState enum."""

    def test_all_states_exist(self):
        """All 8 states exist."""
        assert {s.value for s in OrchestratorState} == {
            "idle",
            "connecting",
            "ready",
            "running",
            "paused",
            "completed",
            "error",
            "closed",
        }

    def test_active_states(self):
        """Only CONNECTING, READY and RUNNING count as playing."""
        assert ACTIVE_STATES == {
            OrchestratorState.CONNECTING,
            OrchestratorState.READY,
            OrchestratorState.RUNNING,
        }
        assert OrchestratorState.RUNNING.active is True
        assert OrchestratorState.PAUSED.active is False
        assert OrchestratorState.ERROR.active is False


class TestValidTransitions:
    """Tests for valid state transitions."""

    def test_every_state_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(OrchestratorState)

    def test_closed_is_terminal(self):
        assert VALID_TRANSITIONS[OrchestratorState.CLOSED] == set()

    def test_closed_reachable_from_everywhere_else(self):
        for state, targets in VALID_TRANSITIONS.items():
            if state != OrchestratorState.CLOSED:
                assert OrchestratorState.CLOSED in targets

    def test_completed_only_closes(self):
        assert VALID_TRANSITIONS[OrchestratorState.COMPLETED] == {OrchestratorState.CLOSED}

    def test_running_requires_ready(self):
        """RUNNING is only entered through READY (the barrier)."""
        for state, targets in VALID_TRANSITIONS.items():
            if OrchestratorState.RUNNING in targets:
                assert state == OrchestratorState.READY

    def test_error_recovers_through_connecting(self):
        assert OrchestratorState.CONNECTING in VALID_TRANSITIONS[OrchestratorState.ERROR]
        assert OrchestratorState.RUNNING not in VALID_TRANSITIONS[OrchestratorState.ERROR]


class TestStateTransition:
    """Tests for StateTransition dataclass."""

    def test_create_transition(self):
        transition = StateTransition(
            old_state=OrchestratorState.IDLE,
            new_state=OrchestratorState.CONNECTING,
            t_ms=12345,
            reason="user_start",
        )
        assert transition.old_state == OrchestratorState.IDLE
        assert transition.new_state == OrchestratorState.CONNECTING
        assert transition.t_ms == 12345
        assert transition.metadata == {}


class TestGuidedStateMachine:
    """Tests for GuidedStateMachine."""

    @pytest.fixture
    def fsm(self):
        return GuidedStateMachine("test-fsm")

    def test_init(self, fsm):
        """FSM initializes in IDLE state."""
        assert fsm.state == OrchestratorState.IDLE
        assert fsm.session_id == "test-fsm"
        assert fsm.history == []

    def test_valid_transition(self, fsm):
        transition = fsm.transition_to(OrchestratorState.CONNECTING, "user_start")

        assert transition.old_state == OrchestratorState.IDLE
        assert transition.new_state == OrchestratorState.CONNECTING
        assert fsm.state == OrchestratorState.CONNECTING

    def test_invalid_transition(self, fsm):
        """IDLE can't go directly to RUNNING."""
        with pytest.raises(SessionStateError, match="Invalid transition"):
            fsm.transition_to(OrchestratorState.RUNNING, "invalid")
        assert fsm.state == OrchestratorState.IDLE

    def test_invalid_transition_details(self, fsm):
        with pytest.raises(SessionStateError) as exc_info:
            fsm.transition_to(OrchestratorState.PAUSED)

        assert exc_info.value.details["current_state"] == "idle"
        assert exc_info.value.details["target_state"] == "paused"
        assert exc_info.value.recoverable is False

    def test_can_transition(self, fsm):
        assert fsm.can_transition(OrchestratorState.READY)
        assert not fsm.can_transition(OrchestratorState.RUNNING)

    def test_ready_to_ready_allowed(self, fsm):
        """Skip while waiting on a barrier re-arms it."""
        fsm.transition_to(OrchestratorState.READY)
        fsm.transition_to(OrchestratorState.READY, "user_next")
        assert fsm.state == OrchestratorState.READY

    def test_transition_records_history(self, fsm):
        fsm.transition_to(OrchestratorState.CONNECTING, "user_start")
        fsm.transition_to(OrchestratorState.READY, "transport_connected", {"seq": 1})

        assert [t.new_state for t in fsm.history] == [
            OrchestratorState.CONNECTING,
            OrchestratorState.READY,
        ]
        assert fsm.history[-1].metadata == {"seq": 1}

    def test_history_limit(self, fsm):
        fsm.transition_to(OrchestratorState.READY)
        for _ in range(150):
            fsm.transition_to(OrchestratorState.RUNNING)
            fsm.transition_to(OrchestratorState.READY)

        assert len(fsm.history) <= fsm._max_history

    def test_history_is_a_copy(self, fsm):
        fsm.transition_to(OrchestratorState.READY)
        fsm.history.clear()
        assert len(fsm.history) == 1


class TestStateCallbacks:
    """Tests for state change callbacks."""

    def test_on_state_change_callback(self):
        fsm = GuidedStateMachine("test-callbacks")
        received = []
        fsm.on_state_change(received.append)

        fsm.transition_to(OrchestratorState.READY, "voice_disabled")

        assert len(received) == 1
        assert received[0].reason == "voice_disabled"

    def test_callback_error_does_not_break_fsm(self):
        fsm = GuidedStateMachine("test-callbacks")

        def broken(transition):
            raise RuntimeError("callback bug")

        fsm.on_state_change(broken)
        fsm.transition_to(OrchestratorState.READY)

        assert fsm.state == OrchestratorState.READY
