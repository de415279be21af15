"""Guided Session State Machine - 8-state FSM for playback.

States:
- IDLE: Flow loaded, nothing started
- CONNECTING: Voice transport being established
- READY: Cue sent, waiting for the agent's continuation (barrier armed)
- RUNNING: Hold timer counting
- PAUSED: User paused; remaining hold preserved
- COMPLETED: Flow finished (last pose done or early exit)
- ERROR: Transport failed; index and flow preserved
- CLOSED: Player unmounted; terminal

Transitions are synchronous. Every transition is validated against
VALID_TRANSITIONS and recorded in the history.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from yogaflow.exceptions import SessionStateError
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)


class OrchestratorState(Enum):
    """Session playback state."""

    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"
    CLOSED = "closed"

    @property
    def active(self) -> bool:
        """Whether the session is playing (user has pressed play)."""
        return self in ACTIVE_STATES


ACTIVE_STATES = frozenset({
    OrchestratorState.CONNECTING,
    OrchestratorState.READY,
    OrchestratorState.RUNNING,
})


# Valid state transitions (CLOSED reachable from everywhere but itself)
VALID_TRANSITIONS: dict[OrchestratorState, set[OrchestratorState]] = {
    OrchestratorState.IDLE: {
        OrchestratorState.CONNECTING,
        OrchestratorState.READY,
        OrchestratorState.COMPLETED,
        OrchestratorState.CLOSED,
    },
    OrchestratorState.CONNECTING: {
        OrchestratorState.READY,
        OrchestratorState.PAUSED,
        OrchestratorState.COMPLETED,
        OrchestratorState.ERROR,
        OrchestratorState.CLOSED,
    },
    OrchestratorState.READY: {
        OrchestratorState.RUNNING,
        OrchestratorState.PAUSED,
        OrchestratorState.READY,
        OrchestratorState.COMPLETED,
        OrchestratorState.ERROR,
        OrchestratorState.CLOSED,
    },
    OrchestratorState.RUNNING: {
        OrchestratorState.READY,
        OrchestratorState.PAUSED,
        OrchestratorState.COMPLETED,
        OrchestratorState.ERROR,
        OrchestratorState.CLOSED,
    },
    OrchestratorState.PAUSED: {
        OrchestratorState.READY,
        OrchestratorState.CONNECTING,
        OrchestratorState.COMPLETED,
        OrchestratorState.ERROR,
        OrchestratorState.CLOSED,
    },
    OrchestratorState.COMPLETED: {
        OrchestratorState.CLOSED,
    },
    OrchestratorState.ERROR: {
        OrchestratorState.CONNECTING,
        OrchestratorState.COMPLETED,
        OrchestratorState.CLOSED,
    },
    OrchestratorState.CLOSED: set(),
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    old_state: OrchestratorState
    new_state: OrchestratorState
    t_ms: int
    reason: str
    metadata: dict = field(default_factory=dict)


StateChangeCallback = Callable[[StateTransition], None]


class GuidedStateMachine:
    """Validated state holder for one guided session.

    Usage:
        fsm = GuidedStateMachine(session_id="session-123")
        fsm.on_state_change(handle_state_change)
        fsm.transition_to(OrchestratorState.CONNECTING, "user_start")
    """

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._state = OrchestratorState.IDLE
        self._t0 = time.monotonic()

        self._on_change_callbacks: list[StateChangeCallback] = []

        # Transition history
        self._history: list[StateTransition] = []
        self._max_history = 100

    @property
    def state(self) -> OrchestratorState:
        """Current session state."""
        return self._state

    @property
    def session_id(self) -> str:
        """Session identifier."""
        return self._session_id

    def now_ms(self) -> int:
        """Milliseconds since the session was created."""
        return int((time.monotonic() - self._t0) * 1000)

    def on_state_change(self, callback: StateChangeCallback) -> None:
        """Register callback for any state change."""
        self._on_change_callbacks.append(callback)

    def can_transition(self, new_state: OrchestratorState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self._state, set())

    def transition_to(
        self,
        new_state: OrchestratorState,
        reason: str = "",
        metadata: dict | None = None,
    ) -> StateTransition:
        """Transition to a new state.

        Args:
            new_state: Target state
            reason: Reason for transition
            metadata: Additional context

        Returns:
            The recorded StateTransition

        Raises:
            SessionStateError: If transition is not allowed
        """
        old_state = self._state

        if not self.can_transition(new_state):
            raise SessionStateError(
                f"Invalid transition: {old_state.value} → {new_state.value}",
                session_id=self._session_id,
                current_state=old_state.value,
                target_state=new_state.value,
            )

        transition = StateTransition(
            old_state=old_state,
            new_state=new_state,
            t_ms=self.now_ms(),
            reason=reason,
            metadata=metadata or {},
        )

        self._state = new_state

        self._history.append(transition)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        for callback in list(self._on_change_callbacks):
            try:
                callback(transition)
            except Exception as e:
                # Don't let callback errors break state machine
                logger.warning(
                    "state_callback_failed",
                    session_id=self._session_id,
                    error=str(e),
                )

        return transition

    @property
    def history(self) -> list[StateTransition]:
        """Transition history (most recent last)."""
        return self._history.copy()
