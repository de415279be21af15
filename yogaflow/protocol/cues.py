"""Cue Protocol - orchestrator intents as narration agent tokens.

Each cue is a frozen dataclass tagged with a CueKind. CUE_TYPES maps the
closed set of kinds to their variants; encode() rejects anything else.

Wire format (realtime data channel):
    conversation.item.create  user input_text carrying the token
    response.create           metadata {"cue_seq": "<seq>"}

Cancel:
    response.cancel + output_audio_buffer.clear
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from yogaflow.config.constants import FLOW
from yogaflow.flows.instructions import side_suffix
from yogaflow.flows.models import FlowPose, Side


class CueKind(Enum):
    """Closed set of cue intents."""

    SESSION_START = "session_start"
    POSE_ANNOUNCE = "pose_announce"
    HALFWAY = "halfway"
    LAST_BREATH = "last_breath"
    ADVANCE = "advance"
    SESSION_COMPLETE = "session_complete"


# Kinds that arm the barrier: the hold waits for their continuation
BARRIER_KINDS = frozenset({
    CueKind.SESSION_START,
    CueKind.POSE_ANNOUNCE,
    CueKind.ADVANCE,
})


@dataclass(frozen=True)
class SessionStart:
    pose_name: str
    kind: CueKind = CueKind.SESSION_START

    def token(self) -> str:
        return f"[START] First pose: {self.pose_name}"


@dataclass(frozen=True)
class PoseAnnounce:
    pose_name: str
    side: Side | None = None
    kind: CueKind = CueKind.POSE_ANNOUNCE

    def token(self) -> str:
        return f"[POSE: {self.pose_name}{side_suffix(self.side)}]"


@dataclass(frozen=True)
class Halfway:
    kind: CueKind = CueKind.HALFWAY

    def token(self) -> str:
        return "[HALFWAY]"


@dataclass(frozen=True)
class LastBreath:
    kind: CueKind = CueKind.LAST_BREATH

    def token(self) -> str:
        return "[LAST_BREATH]"


@dataclass(frozen=True)
class Advance:
    pose_name: str
    side: Side | None = None
    kind: CueKind = CueKind.ADVANCE

    def token(self) -> str:
        return f"[NEXT: {self.pose_name}{side_suffix(self.side)}]"


@dataclass(frozen=True)
class SessionComplete:
    kind: CueKind = CueKind.SESSION_COMPLETE

    def token(self) -> str:
        return "[COMPLETE]"


Cue = Union[SessionStart, PoseAnnounce, Halfway, LastBreath, Advance, SessionComplete]


CUE_TYPES: dict[CueKind, type] = {
    CueKind.SESSION_START: SessionStart,
    CueKind.POSE_ANNOUNCE: PoseAnnounce,
    CueKind.HALFWAY: Halfway,
    CueKind.LAST_BREATH: LastBreath,
    CueKind.ADVANCE: Advance,
    CueKind.SESSION_COMPLETE: SessionComplete,
}


def requires_ack(cue: Cue) -> bool:
    """Whether the hold must wait for a continuation after this cue."""
    return cue.kind in BARRIER_KINDS


def encode(cue: Cue) -> str:
    """Render a cue as its agent-facing token.

    Raises:
        ValueError: If the object is not one of the cue variants
    """
    expected = CUE_TYPES.get(getattr(cue, "kind", None))
    if expected is None or not isinstance(cue, expected):
        raise ValueError(f"Not a cue: {cue!r}")
    return cue.token()


# -----------------------------------------------------------------------------
# Cue constructors from flow poses
# -----------------------------------------------------------------------------


def session_start_for(flow_pose: FlowPose) -> SessionStart:
    return SessionStart(pose_name=flow_pose.name)


def pose_announce_for(flow_pose: FlowPose) -> PoseAnnounce:
    return PoseAnnounce(pose_name=flow_pose.name, side=flow_pose.side)


def advance_for(flow_pose: FlowPose) -> Advance:
    return Advance(pose_name=flow_pose.name, side=flow_pose.side)


# -----------------------------------------------------------------------------
# Client → agent messages
# -----------------------------------------------------------------------------


CONTINUATION_TOOL: dict[str, Any] = {
    "type": "function",
    "name": FLOW.CONTINUATION_TOOL_NAME,
    "description": (
        "Call this as soon as you begin speaking about a pose, "
        "so the app can start the hold timer."
    ),
    "parameters": {"type": "object", "properties": {}, "required": []},
}


def build_cue_messages(cue: Cue, seq: int) -> list[dict[str, Any]]:
    """Data channel messages delivering one cue.

    The sequence number travels in the response metadata and is echoed
    back by the agent on response.created, so continuations can be matched
    to the cue that caused them.
    """
    return [
        {
            "type": "conversation.item.create",
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": encode(cue)}],
            },
        },
        {
            "type": "response.create",
            "response": {
                "metadata": {FLOW.CUE_SEQ_METADATA_KEY: str(seq)},
            },
        },
    ]


def build_cancel_messages() -> list[dict[str, Any]]:
    """Data channel messages aborting in-flight narration."""
    return [
        {"type": "response.cancel"},
        {"type": "output_audio_buffer.clear"},
    ]


def build_function_output(call_id: str) -> dict[str, Any]:
    """Acknowledge a continuation function call."""
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "function_call_output",
            "call_id": call_id,
            "output": '{"success": true}',
        },
    }


# -----------------------------------------------------------------------------
# Spoken renderings (local narration fallback)
# -----------------------------------------------------------------------------


def spoken_text(cue: Cue) -> str:
    """Sentence spoken for a cue when no realtime agent is available."""
    if isinstance(cue, SessionStart):
        return f"Welcome. Let's begin with {cue.pose_name}."
    if isinstance(cue, PoseAnnounce):
        return f"{cue.pose_name}{side_suffix(cue.side)}."
    if isinstance(cue, Advance):
        return f"Next, {cue.pose_name}{side_suffix(cue.side)}."
    if isinstance(cue, Halfway):
        return "Halfway there. Keep breathing."
    if isinstance(cue, LastBreath):
        return "One last breath."
    if isinstance(cue, SessionComplete):
        return "Well done. Your practice is complete. Namaste."
    raise ValueError(f"No spoken text for cue kind: {cue.kind}")
