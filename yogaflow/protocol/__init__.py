"""Protocol module - cue codec and transport events."""

from yogaflow.protocol.cues import (
    BARRIER_KINDS,
    CONTINUATION_TOOL,
    Advance,
    Cue,
    CueKind,
    Halfway,
    LastBreath,
    PoseAnnounce,
    SessionComplete,
    SessionStart,
    build_cancel_messages,
    build_cue_messages,
    build_function_output,
    encode,
    requires_ack,
    spoken_text,
)
from yogaflow.protocol.events import (
    ContinuationReceived,
    NarrationFinished,
    NarrationStarted,
    ServerEventDecoder,
    StatusChanged,
    TransportEvent,
    TransportFault,
    TransportStatus,
)

__all__ = [
    # Cues
    "BARRIER_KINDS",
    "CONTINUATION_TOOL",
    "Advance",
    "Cue",
    "CueKind",
    "Halfway",
    "LastBreath",
    "PoseAnnounce",
    "SessionComplete",
    "SessionStart",
    "build_cancel_messages",
    "build_cue_messages",
    "build_function_output",
    "encode",
    "requires_ack",
    "spoken_text",
    # Events
    "ContinuationReceived",
    "NarrationFinished",
    "NarrationStarted",
    "ServerEventDecoder",
    "StatusChanged",
    "TransportEvent",
    "TransportFault",
    "TransportStatus",
]
