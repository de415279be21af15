"""Orchestrator module - guided session playback.

Provides:
- GuidedSessionOrchestrator: keeps timer, voice and pose index in lock-step
- GuidedStateMachine: validated playback states
- CancellationController: synchronous CANCEL fan-out
"""

from yogaflow.orchestrator.cancellation import (
    CancellationController,
    CancelMessage,
    CancelReason,
)
from yogaflow.orchestrator.orchestrator import (
    GuidedSessionOrchestrator,
    PendingCue,
    SessionSnapshot,
)
from yogaflow.orchestrator.state_machine import (
    ACTIVE_STATES,
    VALID_TRANSITIONS,
    GuidedStateMachine,
    OrchestratorState,
    StateTransition,
)

__all__ = [
    "ACTIVE_STATES",
    "VALID_TRANSITIONS",
    "CancelMessage",
    "CancelReason",
    "CancellationController",
    "GuidedSessionOrchestrator",
    "GuidedStateMachine",
    "OrchestratorState",
    "PendingCue",
    "SessionSnapshot",
    "StateTransition",
]
