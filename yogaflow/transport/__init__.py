"""Voice transport module - narration session lifecycle.

Provides:
- VoiceTransport: the interface the orchestrator drives
- RealtimeVoiceTransport: live agent over WebRTC (aiortc)
- NarratedVoiceTransport: local text-to-speech fallback
- MockVoiceTransport: in-memory, for tests
- create_transport: selection from settings
"""

from yogaflow.transport.base import EventHandler, VoiceTransport
from yogaflow.transport.bootstrap import RealtimeCredentials, RealtimeSessionClient
from yogaflow.transport.factory import create_narrator, create_transport
from yogaflow.transport.mock import MockVoiceTransport, SentCue
from yogaflow.transport.narrated import NarratedVoiceTransport
from yogaflow.transport.realtime import AudioTrackSink, RealtimeVoiceTransport

__all__ = [
    "AudioTrackSink",
    "EventHandler",
    "MockVoiceTransport",
    "NarratedVoiceTransport",
    "RealtimeCredentials",
    "RealtimeSessionClient",
    "RealtimeVoiceTransport",
    "SentCue",
    "VoiceTransport",
    "create_narrator",
    "create_transport",
]
