"""Narrated Voice Transport - local text-to-speech fallback.

Renders each cue to a short sentence and plays it through the Narrator.
There is no remote agent, so the start of playback doubles as the
continuation signal. A narration that fails before playback still releases
the barrier.
"""

from __future__ import annotations

import asyncio

from yogaflow.narration.narrator import Narrator
from yogaflow.protocol.cues import Cue, requires_ack, spoken_text
from yogaflow.protocol.events import (
    ContinuationReceived,
    NarrationFinished,
    NarrationStarted,
    TransportStatus,
)
from yogaflow.transport.base import VoiceTransport


class NarratedVoiceTransport(VoiceTransport):
    """Voice transport speaking cues through a local Narrator."""

    name = "narrated"

    def __init__(self, session_id: str, narrator: Narrator) -> None:
        super().__init__(session_id)
        self._narrator = narrator
        self._task: asyncio.Task | None = None

    @property
    def narrator(self) -> Narrator:
        return self._narrator

    async def connect(self) -> None:
        if self._status in (TransportStatus.CONNECTING, TransportStatus.CONNECTED):
            return
        self._set_status(TransportStatus.CONNECTED)

    async def disconnect(self) -> None:
        self.cancel()
        await self._narrator.close()
        self._set_status(TransportStatus.DISCONNECTED)
        self._log.disconnected()

    def send_cue(self, cue: Cue, seq: int) -> bool:
        if not self.is_connected:
            return False
        self._stop_task()
        self._task = asyncio.ensure_future(self._narrate(cue, seq))
        return True

    def cancel(self) -> None:
        self._narrator.stop()
        self._stop_task()

    def _stop_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _narrate(self, cue: Cue, seq: int) -> None:
        barrier = requires_ack(cue)
        started = False

        def on_start() -> None:
            nonlocal started
            started = True
            self._emit(NarrationStarted(cue_seq=seq))
            if barrier:
                self._emit(ContinuationReceived(cue_seq=seq))

        await self._narrator.speak(spoken_text(cue), on_start=on_start)

        if started:
            self._emit(NarrationFinished(cue_seq=seq))
        elif barrier:
            self._emit(ContinuationReceived(cue_seq=seq))
