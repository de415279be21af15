"""Tests for ServerEventDecoder (realtime server events → transport events)."""

import json

from yogaflow.protocol.events import (
    ContinuationReceived,
    NarrationFinished,
    NarrationStarted,
    ServerEventDecoder,
)


def created(response_id: str, seq: int | str | None) -> str:
    metadata = {"cue_seq": str(seq)} if seq is not None else None
    return json.dumps({
        "type": "response.created",
        "response": {"id": response_id, "metadata": metadata},
    })


def audio_delta(response_id: str) -> str:
    return json.dumps({"type": "response.audio.delta", "response_id": response_id, "delta": "AAAA"})


def audio_done(response_id: str) -> str:
    return json.dumps({"type": "response.audio.done", "response_id": response_id})


def response_done(response_id: str) -> str:
    return json.dumps({"type": "response.done", "response": {"id": response_id}})


def function_call(response_id: str, name: str = "ready_to_continue", call_id: str = "call_1") -> str:
    return json.dumps({
        "type": "response.function_call_arguments.done",
        "response_id": response_id,
        "name": name,
        "call_id": call_id,
        "arguments": "{}",
    })


class TestDecoder:
    def test_created_produces_no_event(self):
        decoder = ServerEventDecoder()
        assert decoder.decode(created("resp_1", 3)) == []

    def test_first_audio_delta_is_narration_start(self):
        decoder = ServerEventDecoder()
        decoder.decode(created("resp_1", 3))

        events = decoder.decode(audio_delta("resp_1"))
        assert events == [NarrationStarted("resp_1", 3)]

        assert decoder.decode(audio_delta("resp_1")) == []

    def test_audio_done_finishes_narration(self):
        decoder = ServerEventDecoder()
        decoder.decode(created("resp_1", 3))
        decoder.decode(audio_delta("resp_1"))

        assert decoder.decode(audio_done("resp_1")) == [NarrationFinished("resp_1", 3)]
        # Already finished: response.done adds nothing
        assert decoder.decode(response_done("resp_1")) == []

    def test_response_done_without_audio_is_silent(self):
        decoder = ServerEventDecoder()
        decoder.decode(created("resp_1", 3))
        assert decoder.decode(response_done("resp_1")) == []

    def test_response_done_while_speaking_finishes(self):
        decoder = ServerEventDecoder()
        decoder.decode(created("resp_1", 4))
        decoder.decode(audio_delta("resp_1"))

        assert decoder.decode(response_done("resp_1")) == [NarrationFinished("resp_1", 4)]

    def test_continuation_carries_cue_seq(self):
        decoder = ServerEventDecoder()
        decoder.decode(created("resp_9", 12))

        events = decoder.decode(function_call("resp_9", call_id="call_abc"))
        assert events == [ContinuationReceived(cue_seq=12, call_id="call_abc")]

    def test_continuation_for_unknown_response_has_no_seq(self):
        decoder = ServerEventDecoder()
        events = decoder.decode(function_call("resp_unknown"))
        assert events == [ContinuationReceived(cue_seq=None, call_id="call_1")]

    def test_other_function_names_ignored(self):
        decoder = ServerEventDecoder()
        assert decoder.decode(function_call("resp_1", name="get_weather")) == []

    def test_bad_metadata_seq_is_none(self):
        decoder = ServerEventDecoder()
        decoder.decode(created("resp_1", "abc"))
        assert decoder.decode(audio_delta("resp_1")) == [NarrationStarted("resp_1", None)]

    def test_malformed_messages(self):
        decoder = ServerEventDecoder()
        assert decoder.decode("not json") == []
        assert decoder.decode("[1, 2]") == []
        assert decoder.decode(json.dumps({"type": "session.updated"})) == []

    def test_error_event_goes_to_callback(self):
        errors = []
        decoder = ServerEventDecoder(on_error=errors.append)
        payload = {"type": "error", "error": {"message": "boom"}}

        assert decoder.decode(json.dumps(payload)) == []
        assert errors == [payload]

    def test_reset_forgets_responses(self):
        decoder = ServerEventDecoder()
        decoder.decode(created("resp_1", 3))
        decoder.decode(audio_delta("resp_1"))
        decoder.reset()

        assert decoder.decode(audio_done("resp_1")) == []
        assert decoder.decode(audio_delta("resp_1")) == [NarrationStarted("resp_1", None)]
