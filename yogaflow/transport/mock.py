"""Mock Voice Transport - for testing and offline runs.

Records every cue and cancel, and lets the caller inject the events a
real agent would produce. Does not require any external services.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from yogaflow.protocol.cues import Cue, CueKind, requires_ack
from yogaflow.protocol.events import (
    ContinuationReceived,
    NarrationFinished,
    NarrationStarted,
    TransportStatus,
)
from yogaflow.transport.base import VoiceTransport


@dataclass(frozen=True)
class SentCue:
    cue: Cue
    seq: int


class MockVoiceTransport(VoiceTransport):
    """In-memory voice transport.

    Args:
        fail_connect: connect() reports a fault instead of connecting
        auto_ack: every barrier cue is acknowledged immediately
        connect_delay_s: simulated establishment latency
    """

    name = "mock"

    def __init__(
        self,
        session_id: str = "mock-session",
        fail_connect: bool = False,
        auto_ack: bool = False,
        connect_delay_s: float = 0.0,
    ) -> None:
        super().__init__(session_id)
        self.fail_connect = fail_connect
        self.auto_ack = auto_ack
        self._connect_delay_s = connect_delay_s

        self.sent: list[SentCue] = []
        self.cancel_count = 0
        self.connect_count = 0
        self.disconnect_count = 0
        self.speaking = False

    # ------------------------------------------------------------------
    # VoiceTransport
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if self._status in (TransportStatus.CONNECTING, TransportStatus.CONNECTED):
            return
        self.connect_count += 1
        self._set_status(TransportStatus.CONNECTING)

        if self._connect_delay_s:
            await asyncio.sleep(self._connect_delay_s)

        if self._status != TransportStatus.CONNECTING:
            return
        if self.fail_connect:
            self._fail("bootstrap", "mock connect failure")
            return
        self._set_status(TransportStatus.CONNECTED)

    async def disconnect(self) -> None:
        self.disconnect_count += 1
        self.speaking = False
        self._set_status(TransportStatus.DISCONNECTED)

    def send_cue(self, cue: Cue, seq: int) -> bool:
        if not self.is_connected:
            return False
        self.sent.append(SentCue(cue, seq))
        if self.auto_ack and requires_ack(cue):
            self.start_narration(seq)
            self.acknowledge(seq)
        return True

    def cancel(self) -> None:
        self.cancel_count += 1
        self.speaking = False

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    @property
    def cues(self) -> list[Cue]:
        return [sent.cue for sent in self.sent]

    @property
    def kinds(self) -> list[CueKind]:
        return [sent.cue.kind for sent in self.sent]

    @property
    def tokens(self) -> list[str]:
        return [sent.cue.token() for sent in self.sent]

    @property
    def last_seq(self) -> int | None:
        return self.sent[-1].seq if self.sent else None

    def acknowledge(self, seq: int | None = None, call_id: str | None = None) -> None:
        """Deliver a continuation (defaults to the most recent cue)."""
        if seq is None:
            seq = self.last_seq
        self._emit(ContinuationReceived(cue_seq=seq, call_id=call_id))

    def start_narration(self, seq: int | None = None) -> None:
        self.speaking = True
        self._emit(NarrationStarted(cue_seq=seq))

    def finish_narration(self, seq: int | None = None) -> None:
        self.speaking = False
        self._emit(NarrationFinished(cue_seq=seq))

    def fail(self, stage: str = "peer", message: str = "mock transport failure") -> None:
        """Simulate a fatal fault after connection."""
        self._fail(stage, message)

    def clear(self) -> None:
        self.sent.clear()
        self.cancel_count = 0
