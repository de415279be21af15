"""Narration module - cached text-to-speech for the local voice fallback."""

from yogaflow.narration.cache import NarrationCache, cache_key
from yogaflow.narration.narrator import AudioPlayer, Narrator, paced_playback
from yogaflow.narration.synthesis import DEFAULT_VOICE_SETTINGS, SpeechSynthesizer

__all__ = [
    "DEFAULT_VOICE_SETTINGS",
    "AudioPlayer",
    "NarrationCache",
    "Narrator",
    "SpeechSynthesizer",
    "cache_key",
    "paced_playback",
]
