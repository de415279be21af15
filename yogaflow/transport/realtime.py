"""Realtime Voice Transport - aiortc peer connection to the narration agent.

Session layout:
- outbound: silent placeholder audio track (the user never speaks)
- inbound: narration audio, consumed by AudioTrackSink
- data channel "oai-events": cues out, server events in

Connection establishment (bootstrap, SDP exchange, channel open) is bounded
by connect_timeout_s. Peer connection failure after establishment is a
fatal fault: status ERROR plus a TransportFault event.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Callable

from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCDataChannel,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.mediastreams import AudioStreamTrack, MediaStreamError

from yogaflow.config.constants import FLOW
from yogaflow.config.settings import Settings
from yogaflow.exceptions import TransportUnavailableError
from yogaflow.observability.logging import get_logger
from yogaflow.observability.metrics import record_connect_latency
from yogaflow.protocol.cues import (
    CONTINUATION_TOOL,
    Cue,
    build_cancel_messages,
    build_cue_messages,
    build_function_output,
)
from yogaflow.protocol.events import (
    ContinuationReceived,
    NarrationFinished,
    NarrationStarted,
    ServerEventDecoder,
    TransportStatus,
)
from yogaflow.transport.base import VoiceTransport
from yogaflow.transport.bootstrap import RealtimeSessionClient
from yogaflow.utils.async_timeout import AsyncTimeoutError, with_timeout

logger = get_logger(__name__)

AudioCallback = Callable[[bytes, int], None]


class AudioTrackSink:
    """Sink for narration audio arriving over the peer connection.

    Forwards PCM frames to an optional callback unless muted. Muting is
    the local half of cancel(): it takes effect on the next frame.
    """

    def __init__(
        self,
        session_id: str,
        on_audio: AudioCallback | None = None,
    ) -> None:
        self._session_id = session_id
        self._on_audio = on_audio
        self._running = False
        self.muted = False
        self.frames_dropped = 0

    async def start(self, track: MediaStreamTrack) -> None:
        """Receive audio from track until stopped or the track ends.

        Args:
            track: Inbound audio track
        """
        self._running = True

        while self._running:
            try:
                frame = await track.recv()
            except MediaStreamError:
                break
            except Exception as e:
                if self._running:
                    logger.error(
                        "audio_receive_error",
                        session_id=self._session_id,
                        error=str(e),
                    )
                break

            if self.muted or self._on_audio is None:
                self.frames_dropped += 1
                continue

            audio_bytes = bytes(frame.planes[0])
            timestamp_ms = int(frame.pts * 1000 / frame.sample_rate) if frame.pts else 0
            self._on_audio(audio_bytes, timestamp_ms)

    def stop(self) -> None:
        """Stop receiving audio."""
        self._running = False


class RealtimeVoiceTransport(VoiceTransport):
    """Voice transport backed by a realtime agent over WebRTC.

    Usage:
        transport = RealtimeVoiceTransport(
            session_id,
            RealtimeSessionClient.from_settings(settings),
            instructions=build_instructions(flow),
        )
        transport.set_event_handler(orchestrator.on_transport_event)
        await transport.connect()
        transport.send_cue(SessionStart("Mountain Pose"), seq=1)
    """

    name = "realtime"

    def __init__(
        self,
        session_id: str,
        session_client: RealtimeSessionClient,
        instructions: str,
        voice: str = "sage",
        connect_timeout_s: float = FLOW.CONNECT_TIMEOUT_S,
        stun_server: str | None = None,
        on_audio: AudioCallback | None = None,
    ) -> None:
        super().__init__(session_id)
        self._session_client = session_client
        self._instructions = instructions
        self._voice = voice
        self._connect_timeout_s = connect_timeout_s
        self._stun_server = stun_server

        self._pc: RTCPeerConnection | None = None
        self._channel: RTCDataChannel | None = None
        self._sink = AudioTrackSink(session_id, on_audio)
        self._sink_task: asyncio.Task | None = None
        self._decoder = ServerEventDecoder(on_error=self._log.server_error)

        self._connect_task: asyncio.Task | None = None
        self._channel_open: asyncio.Event | None = None
        self._negotiation_error: str | None = None
        self._response_active = False

    @classmethod
    def from_settings(
        cls,
        session_id: str,
        settings: Settings,
        instructions: str,
        on_audio: AudioCallback | None = None,
    ) -> "RealtimeVoiceTransport":
        return cls(
            session_id,
            RealtimeSessionClient.from_settings(settings),
            instructions=instructions,
            voice=settings.realtime_voice,
            connect_timeout_s=settings.connect_timeout_s,
            stun_server=settings.webrtc_stun_server,
            on_audio=on_audio,
        )

    @property
    def sink(self) -> AudioTrackSink:
        return self._sink

    @property
    def channel_state(self) -> str:
        return self._channel.readyState if self._channel is not None else "closed"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Bootstrap, negotiate and wait for the control channel to open.

        Never raises on failure: reports ERROR and a TransportFault.
        """
        if self._status in (TransportStatus.CONNECTING, TransportStatus.CONNECTED):
            return

        if self._pc is not None:
            await self._teardown()

        self._set_status(TransportStatus.CONNECTING)
        self._connect_task = asyncio.current_task()
        started = time.perf_counter()

        try:
            await with_timeout(
                self._negotiate(),
                timeout_s=self._connect_timeout_s,
                operation="realtime connect",
            )
        except AsyncTimeoutError as e:
            await self._teardown()
            self._fail("timeout", e.message, e.details)
            return
        except TransportUnavailableError as e:
            await self._teardown()
            self._fail(e.stage or "bootstrap", e.message, e.details)
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._teardown()
            self._fail("negotiation", str(e) or type(e).__name__)
            return
        finally:
            self._connect_task = None

        record_connect_latency((time.perf_counter() - started) * 1000)
        self._set_status(TransportStatus.CONNECTED)

    async def _negotiate(self) -> None:
        credentials = await self._session_client.create_session(
            self._instructions,
            self._voice,
            [CONTINUATION_TOOL],
        )

        pc = RTCPeerConnection(self._create_rtc_config())
        self._pc = pc
        self._negotiation_error = None
        channel_open = asyncio.Event()
        self._channel_open = channel_open

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            if self._pc is pc:
                self._on_connection_state(pc.connectionState)

        @pc.on("track")
        def on_track(track: MediaStreamTrack):
            if track.kind == "audio":
                logger.info("narration_track_received", session_id=self._session_id)
                self._sink_task = asyncio.ensure_future(self._sink.start(track))

        # The agent expects an audio m-line; the user never speaks
        pc.addTrack(AudioStreamTrack())

        channel = pc.createDataChannel(FLOW.DATA_CHANNEL_LABEL)
        self._channel = channel

        @channel.on("open")
        def on_channel_open():
            logger.info("control_channel_open", session_id=self._session_id)
            channel_open.set()

        @channel.on("message")
        def on_channel_message(message):
            self._on_message(message)

        @channel.on("close")
        def on_channel_close():
            # _teardown detaches the channel before closing it
            if self._channel is channel and self._status == TransportStatus.CONNECTED:
                self._fail("channel", "control channel closed")

        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)

        answer_sdp = await self._session_client.exchange_sdp(
            pc.localDescription.sdp,
            credentials,
        )
        await pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))

        await channel_open.wait()
        if self._negotiation_error:
            raise TransportUnavailableError(self._negotiation_error, stage="ice")

    def _create_rtc_config(self) -> RTCConfiguration:
        ice_servers = []
        if self._stun_server:
            ice_servers.append(RTCIceServer(urls=self._stun_server))
        return RTCConfiguration(iceServers=ice_servers)

    def _on_connection_state(self, state: str) -> None:
        logger.info(
            "connection_state_change",
            session_id=self._session_id,
            state=state,
        )
        if state not in ("failed", "disconnected"):
            return

        if self._status == TransportStatus.CONNECTING:
            self._negotiation_error = f"peer connection {state}"
            if self._channel_open is not None:
                self._channel_open.set()
        elif self._status == TransportStatus.CONNECTED:
            self._sink.muted = True
            self._fail("peer", f"peer connection {state}")

    async def disconnect(self) -> None:
        """Close the session. Safe from any state, including never connected."""
        task = self._connect_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

        await self._teardown()
        await self._session_client.close()
        self._decoder.reset()
        self._response_active = False
        self._set_status(TransportStatus.DISCONNECTED)
        self._log.disconnected()

    async def _teardown(self) -> None:
        self._sink.stop()
        if self._sink_task is not None:
            self._sink_task.cancel()
            self._sink_task = None

        channel, self._channel = self._channel, None
        pc, self._pc = self._pc, None
        self._channel_open = None

        if channel is not None:
            try:
                channel.close()
            except Exception as e:
                logger.debug("channel_close_error", session_id=self._session_id, error=str(e))

        if pc is not None:
            await pc.close()

    # ------------------------------------------------------------------
    # Cues and cancellation
    # ------------------------------------------------------------------

    def send_cue(self, cue: Cue, seq: int) -> bool:
        if not self.is_connected or self.channel_state != "open":
            return False

        self._sink.muted = False
        for message in build_cue_messages(cue, seq):
            if not self._send(message):
                return False
        self._response_active = True
        return True

    def cancel(self) -> None:
        """Mute now, then ask the agent to abort. Repeat calls are no-ops."""
        self._sink.muted = True
        if not self._response_active:
            return
        self._response_active = False
        if self.channel_state == "open":
            for message in build_cancel_messages():
                self._send(message)

    def _send(self, message: dict[str, Any]) -> bool:
        if self._channel is None:
            return False
        try:
            self._channel.send(json.dumps(message))
            return True
        except Exception as e:
            logger.warning(
                "control_send_error",
                session_id=self._session_id,
                type=message.get("type"),
                error=str(e),
            )
            return False

    def _on_message(self, message: str | bytes) -> None:
        for event in self._decoder.decode(message):
            if isinstance(event, ContinuationReceived) and event.call_id:
                self._send(build_function_output(event.call_id))
            elif isinstance(event, NarrationStarted):
                self._response_active = True
            elif isinstance(event, NarrationFinished):
                self._response_active = False
            self._emit(event)
