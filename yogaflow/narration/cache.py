"""Narration Cache - synthesized audio keyed by exact text.

One file per utterance, named by the sha256 of the text. Blobs smaller
than min_bytes are treated as corrupt: ignored (and evicted) on read,
never written.

The cache is best effort. I/O failures are logged and behave as misses.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path

from yogaflow.config.constants import FLOW
from yogaflow.observability.logging import get_logger
from yogaflow.observability.metrics import record_narration_cache

logger = get_logger(__name__)


def cache_key(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class NarrationCache:
    """File-backed text → MP3 cache."""

    suffix = ".mp3"

    def __init__(
        self,
        cache_dir: str | Path,
        min_bytes: int = FLOW.NARRATION_MIN_BYTES,
    ) -> None:
        self._dir = Path(cache_dir)
        self._min_bytes = min_bytes

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, text: str) -> Path:
        return self._dir / f"{cache_key(text)}{self.suffix}"

    def get(self, text: str) -> bytes | None:
        path = self.path_for(text)
        try:
            audio = path.read_bytes()
        except FileNotFoundError:
            record_narration_cache("miss")
            return None
        except OSError as e:
            logger.warning("narration_cache_read_failed", path=str(path), error=str(e))
            record_narration_cache("miss")
            return None

        if len(audio) < self._min_bytes:
            logger.warning("narration_cache_corrupt", path=str(path), size=len(audio))
            record_narration_cache("corrupt")
            path.unlink(missing_ok=True)
            return None

        record_narration_cache("hit")
        return audio

    def put(self, text: str, audio: bytes) -> bool:
        """Store audio. Returns False if it was rejected or not written."""
        if len(audio) < self._min_bytes:
            logger.warning("narration_too_small", size=len(audio), min_bytes=self._min_bytes)
            return False

        path = self.path_for(text)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(audio)
                os.replace(tmp_path, path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning("narration_cache_write_failed", path=str(path), error=str(e))
            return False
        return True

    def clear(self) -> int:
        """Remove every cached utterance. Returns the number removed."""
        if not self._dir.exists():
            return 0
        removed = 0
        for path in self._dir.glob(f"*{self.suffix}"):
            path.unlink(missing_ok=True)
            removed += 1
        logger.info("narration_cache_cleared", removed=removed)
        return removed
