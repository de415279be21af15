"""Voice Transport Interface - live narration session lifecycle.

A transport owns one narration session: connection, cue delivery, and the
cancellation primitive. It reports everything it observes as typed events
(see yogaflow.protocol.events) and never raises into the orchestrator.

Contract:
- connect(): async, idempotent while CONNECTING/CONNECTED. On failure the
  status becomes ERROR and a TransportFault is emitted.
- disconnect(): releases everything. Safe from any state.
- send_cue(cue, seq): False when the control channel is not open.
- cancel(): synchronous, idempotent. Mutes local playback immediately and
  asks the agent to abort the in-flight response.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from yogaflow.observability.logging import TransportLogger
from yogaflow.observability.metrics import record_transport_error
from yogaflow.protocol.cues import Cue
from yogaflow.protocol.events import (
    StatusChanged,
    TransportEvent,
    TransportFault,
    TransportStatus,
)

EventHandler = Callable[[TransportEvent], None]


class VoiceTransport(ABC):
    """Base class for voice transports.

    Provides status bookkeeping and event dispatch. Concrete transports
    implement connect/disconnect/send_cue/cancel.
    """

    name: str = "base"

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._status = TransportStatus.DISCONNECTED
        self._handler: EventHandler | None = None
        self._log = TransportLogger(session_id, self.name)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def status(self) -> TransportStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == TransportStatus.CONNECTED

    def set_event_handler(self, handler: EventHandler | None) -> None:
        """Register the single consumer of transport events."""
        self._handler = handler

    @abstractmethod
    async def connect(self) -> None:
        """Establish the narration session."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the session and every resource it holds."""
        ...

    @abstractmethod
    def send_cue(self, cue: Cue, seq: int) -> bool:
        """Deliver a cue. Returns False if it was dropped."""
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Abort in-flight narration."""
        ...

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    def _emit(self, event: TransportEvent) -> None:
        if self._handler is None:
            return
        try:
            self._handler(event)
        except Exception as e:
            self._log.handler_failed(type(event).__name__, str(e))

    def _set_status(self, new_status: TransportStatus) -> None:
        old_status = self._status
        if old_status == new_status:
            return
        self._status = new_status
        self._log.status_changed(old_status.value, new_status.value)
        self._emit(StatusChanged(old_status, new_status))

    def _fail(
        self,
        stage: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Enter ERROR and report the fault."""
        record_transport_error(stage)
        self._log.connect_failed(message, stage=stage)
        self._set_status(TransportStatus.ERROR)
        self._emit(TransportFault(stage=stage, message=message, details=details or {}))
