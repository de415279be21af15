"""Narrator - speak(text) resolves once the utterance has been played.

cache hit → play
cache miss → synthesize → cache → play

Any synthesis or playback fault resolves speak() as if the utterance had
finished: a failed narration never blocks the session. stop() aborts the
current utterance.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from yogaflow.exceptions import NarrationPlaybackError, NarrationSynthesisError
from yogaflow.narration.cache import NarrationCache
from yogaflow.narration.synthesis import SpeechSynthesizer
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)

AudioPlayer = Callable[[bytes], Awaitable[None]]

MP3_BITRATE_BPS = 128_000


async def paced_playback(audio: bytes) -> None:
    """Headless player: wait as long as the MP3 would take to play."""
    await asyncio.sleep(len(audio) * 8 / MP3_BITRATE_BPS)


class Narrator:
    """Cached text-to-speech with a pluggable audio player.

    Usage:
        narrator = Narrator(synthesizer, NarrationCache(".cache/narration"))
        await narrator.speak("Welcome.")
    """

    def __init__(
        self,
        synthesizer: SpeechSynthesizer | None,
        cache: NarrationCache | None = None,
        player: AudioPlayer | None = paced_playback,
        enabled: bool = True,
    ) -> None:
        self._synthesizer = synthesizer
        self._cache = cache
        self._player = player
        self.enabled = enabled
        self._current: asyncio.Task | None = None

    @property
    def speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    async def speak(
        self,
        text: str,
        on_start: Callable[[], None] | None = None,
    ) -> bool:
        """Speak text. Returns True if the utterance played to the end.

        on_start fires when playback begins (after any synthesis).
        """
        if not self.enabled:
            return False

        self.stop()
        task = asyncio.ensure_future(self._render_and_play(text, on_start))
        self._current = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._current is task:
                self._current = None

        if task.cancelled():
            logger.debug("narration_stopped", text=text[:50])
            return False

        error = task.exception()
        if error is not None:
            logger.warning(
                "narration_failed",
                error=str(error),
                error_type=type(error).__name__,
                text=text[:50],
            )
            return False
        return True

    def stop(self) -> None:
        """Abort the current utterance, if any."""
        task, self._current = self._current, None
        if task is not None and not task.done():
            task.cancel()

    async def synthesize(self, text: str) -> bytes:
        """Cached synthesis without playback.

        Raises:
            NarrationSynthesisError: If nothing is cached and synthesis fails
        """
        audio = self._cache.get(text) if self._cache is not None else None
        if audio is not None:
            return audio

        if self._synthesizer is None:
            raise NarrationSynthesisError("no synthesizer configured", text_length=len(text))

        audio = await self._synthesizer.synthesize(text)
        if self._cache is not None:
            self._cache.put(text, audio)
        return audio

    async def _render_and_play(
        self,
        text: str,
        on_start: Callable[[], None] | None,
    ) -> None:
        audio = await self.synthesize(text)

        if on_start is not None:
            on_start()

        if self._player is None:
            return
        try:
            await self._player(audio)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise NarrationPlaybackError(str(e) or type(e).__name__) from e

    async def close(self) -> None:
        self.stop()
        if self._synthesizer is not None:
            await self._synthesizer.close()
