"""Voice Transport Factory - transport selection from settings.

Selects the narration backend:
1. realtime - live agent over WebRTC (default)
2. narrated - local ElevenLabs narration
3. mock - in-memory, for tests and offline runs
"""

from typing import Literal

from yogaflow.config.settings import Settings, get_settings
from yogaflow.exceptions import ConfigurationError
from yogaflow.flows.instructions import build_instructions
from yogaflow.flows.models import Flow
from yogaflow.narration.cache import NarrationCache
from yogaflow.narration.narrator import AudioPlayer, Narrator, paced_playback
from yogaflow.narration.synthesis import SpeechSynthesizer
from yogaflow.observability.logging import get_logger
from yogaflow.transport.base import VoiceTransport
from yogaflow.transport.mock import MockVoiceTransport
from yogaflow.transport.narrated import NarratedVoiceTransport
from yogaflow.transport.realtime import AudioCallback, RealtimeVoiceTransport

logger = get_logger(__name__)

TransportType = Literal["realtime", "narrated", "mock"]


def create_narrator(
    settings: Settings,
    player: AudioPlayer | None = paced_playback,
) -> Narrator:
    """Narrator wired to ElevenLabs and the on-disk cache."""
    return Narrator(
        SpeechSynthesizer.from_settings(settings),
        NarrationCache(settings.narration_cache_dir, settings.narration_min_bytes),
        player=player,
    )


def create_transport(
    session_id: str,
    flow: Flow,
    settings: Settings | None = None,
    transport: TransportType | None = None,
    on_audio: AudioCallback | None = None,
    player: AudioPlayer | None = paced_playback,
) -> VoiceTransport:
    """Create a voice transport instance.

    Args:
        session_id: Session identifier (log correlation)
        flow: Flow being played (realtime instructions)
        settings: Settings; defaults to get_settings()
        transport: Overrides settings.voice_transport
        on_audio: Realtime narration PCM frames
        player: Narrated transport audio player

    Returns:
        Configured VoiceTransport
    """
    settings = settings or get_settings()
    kind = transport or settings.voice_transport

    logger.info("transport_selected", session_id=session_id, transport=kind)

    if kind == "realtime":
        return RealtimeVoiceTransport.from_settings(
            session_id,
            settings,
            instructions=build_instructions(flow),
            on_audio=on_audio,
        )

    if kind == "narrated":
        return NarratedVoiceTransport(session_id, create_narrator(settings, player))

    if kind == "mock":
        return MockVoiceTransport(session_id, auto_ack=True)

    raise ConfigurationError("voice_transport", f"unknown transport {kind!r}")
