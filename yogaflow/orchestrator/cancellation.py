"""CANCEL Propagation - stop in-flight narration everywhere, now.

Pause, skip, timer completion during narration, transport failure and
close all cancel the current utterance. Cancellation is synchronous: every
registered handler has run when cancel() returns, so the next cue can never
overlap the one being cancelled.

CANCEL must stop:
- the agent's in-flight response
- local narration playback
- the pending barrier
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from yogaflow.observability.logging import CancelLogger


class CancelReason(Enum):
    """Reasons for cancel events."""

    USER_PAUSE = "USER_PAUSE"
    USER_SKIP = "USER_SKIP"
    USER_FINISH = "USER_FINISH"
    PREEMPT = "PREEMPT"  # Timer completed while narration was in flight
    SESSION_CLOSE = "SESSION_CLOSE"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


@dataclass
class CancelMessage:
    """CANCEL control-plane message.

    Schema:
    {
        "session_id": "uuid",
        "type": "CANCEL",
        "reason": "USER_PAUSE|USER_SKIP|USER_FINISH|PREEMPT|SESSION_CLOSE|TRANSPORT_ERROR",
        "t_event_ms": 12345
    }
    """

    session_id: str
    reason: CancelReason
    t_event_ms: int

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "type": "CANCEL",
            "reason": self.reason.value,
            "t_event_ms": self.t_event_ms,
        }


CancelHandler = Callable[[CancelMessage], None]


class CancellationController:
    """Fans a CANCEL out to every registered component.

    Usage:
        controller = CancellationController(session_id="session-123")

        controller.register(lambda msg: transport.cancel())
        controller.register(lambda msg: barrier.clear())

        # On pause
        controller.cancel(CancelReason.USER_PAUSE)
    """

    def __init__(
        self,
        session_id: str,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._session_id = session_id
        self._clock = clock or _monotonic_ms
        self._handlers: list[CancelHandler] = []
        self._last_cancel: CancelMessage | None = None
        self._log = CancelLogger(session_id)

    def register(self, handler: CancelHandler) -> None:
        """Register a component to receive CANCEL messages."""
        self._handlers.append(handler)

    def cancel(self, reason: CancelReason) -> CancelMessage:
        """Propagate CANCEL to all registered handlers.

        Handlers run in registration order. A failing handler is logged and
        does not stop propagation. Safe to call repeatedly.

        Returns:
            The CANCEL message delivered
        """
        message = CancelMessage(
            session_id=self._session_id,
            reason=reason,
            t_event_ms=self._clock(),
        )

        self._last_cancel = message
        self._log.cancel_initiated(reason.value, message.t_event_ms)

        for handler in list(self._handlers):
            try:
                handler(message)
            except Exception as e:
                self._log.handler_failed(
                    getattr(handler, "__qualname__", repr(handler)),
                    str(e),
                )

        return message

    @property
    def last_cancel(self) -> CancelMessage | None:
        """Last CANCEL message sent."""
        return self._last_cancel

    @property
    def session_id(self) -> str:
        """Session ID for this controller."""
        return self._session_id


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)
