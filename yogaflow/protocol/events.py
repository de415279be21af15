"""Transport Events - typed signals from the voice transport.

The orchestrator never sees raw server JSON or exceptions. Every transport
turns what it observes into one of these events:

    StatusChanged          transport status moved
    NarrationStarted       agent began speaking
    NarrationFinished      agent finished (or abandoned) a response
    ContinuationReceived   agent called ready_to_continue
    TransportFault         fatal fault; status is ERROR

ServerEventDecoder maps realtime data channel messages to these events.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Union

from yogaflow.config.constants import FLOW
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)


class TransportStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class StatusChanged:
    old_status: TransportStatus
    new_status: TransportStatus


@dataclass(frozen=True)
class NarrationStarted:
    response_id: str | None = None
    cue_seq: int | None = None


@dataclass(frozen=True)
class NarrationFinished:
    response_id: str | None = None
    cue_seq: int | None = None


@dataclass(frozen=True)
class ContinuationReceived:
    """Release signal for the barrier.

    cue_seq is None when the transport cannot attribute the call to a cue;
    the orchestrator then accepts it for whichever cue is pending.
    """

    cue_seq: int | None = None
    call_id: str | None = None


@dataclass(frozen=True)
class TransportFault:
    stage: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


TransportEvent = Union[
    StatusChanged,
    NarrationStarted,
    NarrationFinished,
    ContinuationReceived,
    TransportFault,
]


class ServerEventDecoder:
    """Stateful decoder for realtime server events.

    Tracks which responses have started producing audio and which cue
    sequence number each response was created for (echoed back in the
    response metadata).

    Usage:
        decoder = ServerEventDecoder()
        for event in decoder.decode(message):
            handler(event)
    """

    def __init__(self, on_error: Callable[[dict[str, Any]], None] | None = None) -> None:
        self._on_error = on_error
        self._response_seq: dict[str, int | None] = {}
        self._speaking: set[str] = set()

    def reset(self) -> None:
        self._response_seq.clear()
        self._speaking.clear()

    def decode(self, message: str | bytes) -> list[TransportEvent]:
        """Decode one data channel message.

        Malformed or unknown messages produce no events.
        """
        try:
            payload = json.loads(message)
        except (TypeError, ValueError) as e:
            logger.warning("malformed_server_event", error=str(e))
            return []

        if not isinstance(payload, dict):
            logger.warning("malformed_server_event", error="not an object")
            return []

        return self.decode_payload(payload)

    def decode_payload(self, payload: dict[str, Any]) -> list[TransportEvent]:
        event_type = payload.get("type")

        if event_type == "response.created":
            response = payload.get("response") or {}
            response_id = response.get("id")
            if response_id:
                self._response_seq[response_id] = _parse_seq(response.get("metadata"))
            return []

        if event_type == "response.audio.delta":
            response_id = payload.get("response_id")
            if response_id in self._speaking:
                return []
            if response_id:
                self._speaking.add(response_id)
            return [NarrationStarted(response_id, self._response_seq.get(response_id))]

        if event_type == "response.audio.done":
            response_id = payload.get("response_id")
            if response_id not in self._speaking:
                return []
            self._speaking.discard(response_id)
            return [NarrationFinished(response_id, self._response_seq.get(response_id))]

        if event_type == "response.done":
            response = payload.get("response") or {}
            response_id = response.get("id")
            seq = self._response_seq.pop(response_id, None)
            if response_id in self._speaking:
                self._speaking.discard(response_id)
                return [NarrationFinished(response_id, seq)]
            return []

        if event_type == "response.function_call_arguments.done":
            if payload.get("name") != FLOW.CONTINUATION_TOOL_NAME:
                logger.debug("unknown_function_call", name=payload.get("name"))
                return []
            response_id = payload.get("response_id")
            return [
                ContinuationReceived(
                    cue_seq=self._response_seq.get(response_id),
                    call_id=payload.get("call_id"),
                )
            ]

        if event_type == "error":
            if self._on_error is not None:
                self._on_error(payload)
            else:
                logger.warning("agent_error", error=payload.get("error"))
            return []

        return []


def _parse_seq(metadata: Any) -> int | None:
    if not isinstance(metadata, dict):
        return None
    raw = metadata.get(FLOW.CUE_SEQ_METADATA_KEY)
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None
