"""Guided Session Orchestrator - lock-step timer, voice and pose index.

Keeps three asynchronous sources in agreement:
- the hold timer (ticks, completion)
- the voice transport (connection, continuation, narration, faults)
- the user (start, pause, resume, skip, finish, close)

All three arrive as callbacks on one event loop; none run concurrently.
Ordering between sources is not guaranteed, so every decision is keyed on
the current pose activation and the sequence number of the pending cue.

Barrier protocol:
    send SessionStart / PoseAnnounce / Advance  →  READY
    continuation for that cue (or barrier timeout) →  RUNNING, timer starts

The orchestrator owns the current pose index. Readers use snapshot().
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from yogaflow.config.settings import Settings, get_settings
from yogaflow.exceptions import PersistenceError, SessionStateError
from yogaflow.flows.models import Flow, FlowPose, TimerMode
from yogaflow.flows.store import FlowStore
from yogaflow.observability.logging import CueLogger, SessionLogger, get_logger
from yogaflow.observability.metrics import (
    record_barrier_timeout,
    record_barrier_wait,
    record_cue_dropped,
    record_cue_sent,
    record_session_end,
    record_session_start,
)
from yogaflow.orchestrator.cancellation import (
    CancellationController,
    CancelMessage,
    CancelReason,
)
from yogaflow.orchestrator.state_machine import (
    GuidedStateMachine,
    OrchestratorState,
    StateChangeCallback,
    StateTransition,
)
from yogaflow.protocol.cues import (
    Cue,
    CueKind,
    Halfway,
    LastBreath,
    SessionComplete,
    advance_for,
    pose_announce_for,
    session_start_for,
)
from yogaflow.protocol.events import (
    ContinuationReceived,
    NarrationFinished,
    NarrationStarted,
    StatusChanged,
    TransportEvent,
    TransportFault,
    TransportStatus,
)
from yogaflow.timer.engine import TimerEngine, TimerState
from yogaflow.transport.base import VoiceTransport
from yogaflow.transport.factory import create_transport

logger = get_logger(__name__)

PoseChangeCallback = Callable[[int, FlowPose], None]
FlowFinishedCallback = Callable[[Flow, str], None]
PersistenceErrorCallback = Callable[[PersistenceError], None]

HALFWAY = "halfway"
LAST_BREATH = "last_breath"


def new_session_id() -> str:
    return f"session-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class PendingCue:
    """The one outstanding cue the hold is waiting on."""

    seq: int
    kind: CueKind
    sent_at: float  # time.monotonic()


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session for UI reads."""

    session_id: str
    state: OrchestratorState
    current_index: int
    pose: FlowPose
    total_poses: int
    active: bool
    transport_status: TransportStatus
    timer: TimerState
    pending_cue_seq: int | None
    voice_enabled: bool


class GuidedSessionOrchestrator:
    """Plays one Flow.

    Usage:
        orchestrator = GuidedSessionOrchestrator(flow, transport, store=FlowStore(path))
        orchestrator.on_pose_change(render_pose)
        orchestrator.start()
        ...
        orchestrator.pause()
        orchestrator.resume()
        orchestrator.next()
        ...
        await orchestrator.close()
    """

    def __init__(
        self,
        flow: Flow,
        transport: VoiceTransport | None = None,
        timer: TimerEngine | None = None,
        store: FlowStore | None = None,
        session_id: str | None = None,
        barrier_timeout_s: float | None = None,
        time_scale: float = 1.0,
    ) -> None:
        self._flow = flow
        self._session_id = session_id or new_session_id()
        self._voice = flow.voice_enabled and transport is not None
        self._transport = transport
        self._timer = timer or TimerEngine(flow.timer_mode, flow.breath_pace, time_scale)
        self._store = store
        if barrier_timeout_s is None:
            barrier_timeout_s = get_settings().barrier_timeout_s
        self._barrier_timeout_s = barrier_timeout_s

        self._fsm = GuidedStateMachine(self._session_id)
        self._fsm.on_state_change(self._log_transition)
        self._cancellation = CancellationController(self._session_id, clock=self._fsm.now_ms)
        self._cancellation.register(self._on_cancel)

        self._session_log = SessionLogger(self._session_id)
        self._cue_log = CueLogger(self._session_id)

        self._index = 0
        self._seq = 0
        self._pending: PendingCue | None = None
        self._barrier_handle: asyncio.TimerHandle | None = None
        self._markers: set[tuple[int, str]] = set()
        self._narrating = False
        # Halfway or LastBreath delivered and not yet finished speaking
        self._inflight_seq: int | None = None
        self._greeted = False

        # Cue to send once the transport reports CONNECTED
        self._connect_cue: Callable[[FlowPose], Cue] | None = None
        self._connect_task: asyncio.Task | None = None

        self._started_at: float | None = None
        self._ended = False

        self._pose_callbacks: list[PoseChangeCallback] = []
        self._finished_callbacks: list[FlowFinishedCallback] = []
        self._persistence_callbacks: list[PersistenceErrorCallback] = []

        self._timer.on_tick(self.on_timer_tick)
        self._timer.on_complete(self.on_timer_complete)
        if transport is not None:
            transport.set_event_handler(self.on_transport_event)

        self._activate(0)

    @classmethod
    def from_settings(
        cls,
        flow: Flow,
        settings: Settings | None = None,
        session_id: str | None = None,
        **transport_kwargs: Any,
    ) -> "GuidedSessionOrchestrator":
        """Orchestrator with transport, store and barrier timeout from settings.

        A flow with voice disabled gets no transport.
        """
        settings = settings or get_settings()
        session_id = session_id or new_session_id()
        transport = None
        if flow.voice_enabled:
            transport = create_transport(session_id, flow, settings, **transport_kwargs)
        return cls(
            flow,
            transport=transport,
            store=FlowStore(settings.flow_store_path),
            session_id=session_id,
            barrier_timeout_s=settings.barrier_timeout_s,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def flow(self) -> Flow:
        return self._flow

    @property
    def state(self) -> OrchestratorState:
        return self._fsm.state

    @property
    def active(self) -> bool:
        return self._fsm.state.active

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_pose(self) -> FlowPose:
        return self._flow.poses[self._index]

    @property
    def timer(self) -> TimerEngine:
        return self._timer

    @property
    def transport(self) -> VoiceTransport | None:
        return self._transport

    @property
    def cancellation(self) -> CancellationController:
        return self._cancellation

    @property
    def pending_cue_seq(self) -> int | None:
        return self._pending.seq if self._pending is not None else None

    @property
    def history(self) -> list[StateTransition]:
        return self._fsm.history

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self._session_id,
            state=self._fsm.state,
            current_index=self._index,
            pose=self.current_pose,
            total_poses=len(self._flow),
            active=self.active,
            transport_status=(
                self._transport.status if self._transport is not None
                else TransportStatus.DISCONNECTED
            ),
            timer=self._timer.state(),
            pending_cue_seq=self.pending_cue_seq,
            voice_enabled=self._voice,
        )

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_state_change(self, callback: StateChangeCallback) -> None:
        self._fsm.on_state_change(callback)

    def on_pose_change(self, callback: PoseChangeCallback) -> None:
        """Called with (index, flow_pose) whenever the visible pose changes."""
        self._pose_callbacks.append(callback)

    def on_flow_finished(self, callback: FlowFinishedCallback) -> None:
        """Called with (flow, reason) once, on completion or early exit."""
        self._finished_callbacks.append(callback)

    def on_persistence_error(self, callback: PersistenceErrorCallback) -> None:
        self._persistence_callbacks.append(callback)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin the session from IDLE.

        Raises:
            SessionStateError: If the session was already started
        """
        if self._fsm.state != OrchestratorState.IDLE:
            raise SessionStateError(
                "start() requires an idle session",
                session_id=self._session_id,
                current_state=self._fsm.state.value,
            )

        self._started_at = time.monotonic()
        record_session_start()
        self._session_log.session_started({
            "flow_id": self._flow.id,
            "poses": len(self._flow),
            "timer_mode": self._flow.timer_mode.value,
            "voice": self._voice,
        })

        if not self._voice:
            self._fsm.transition_to(OrchestratorState.READY, "voice_disabled")
            self._release_barrier("voice_disabled")
            return

        self._begin_connect("user_start", session_start_for)

    def pause(self) -> None:
        """Stop narration and the hold; remaining is preserved."""
        if not self.active:
            return

        self._cancellation.cancel(CancelReason.USER_PAUSE)
        self._timer.pause()
        self._connect_cue = None
        self._fsm.transition_to(OrchestratorState.PAUSED, "user_pause")

    def resume(self) -> None:
        """Re-announce the current pose; the hold resumes on continuation."""
        if self._fsm.state != OrchestratorState.PAUSED:
            return

        if not self._voice:
            self._fsm.transition_to(OrchestratorState.READY, "user_resume")
            self._release_barrier("voice_disabled")
            return

        if self._transport.is_connected:
            self._fsm.transition_to(OrchestratorState.READY, "user_resume")
            self._arm_barrier(self._resume_cue()(self.current_pose))
            return

        self._begin_connect("user_resume", self._resume_cue())

    def toggle(self) -> None:
        """The play button: start, pause, resume or reconnect."""
        state = self._fsm.state
        if state == OrchestratorState.IDLE:
            self.start()
        elif state.active:
            self.pause()
        elif state == OrchestratorState.PAUSED:
            self.resume()
        elif state == OrchestratorState.ERROR:
            self.reconnect()

    def next(self) -> None:
        self.skip_to(self._index + 1, reason="user_next")

    def previous(self) -> None:
        self.skip_to(self._index - 1, reason="user_previous")

    def skip_to(self, index: int, reason: str = "user_skip") -> None:
        """Jump to a pose. The target is clamped to the flow.

        While active, exactly one Advance cue is sent and the barrier is
        re-armed. While inactive the timer is reset but nothing is sent.
        """
        state = self._fsm.state
        if state in (OrchestratorState.COMPLETED, OrchestratorState.CLOSED):
            return

        target = max(0, min(index, self._flow.last_index))
        self._cancellation.cancel(CancelReason.USER_SKIP)
        self._set_index(target, reason)

        if state in (OrchestratorState.READY, OrchestratorState.RUNNING):
            self._fsm.transition_to(OrchestratorState.READY, reason)
            self._arm_barrier(advance_for(self.current_pose))
        # CONNECTING: the pending connect cue announces whatever pose is current

    def finish(self) -> None:
        """Early exit: close the flow out and persist it."""
        if self._fsm.state in (OrchestratorState.COMPLETED, OrchestratorState.CLOSED):
            return

        self._cancellation.cancel(CancelReason.USER_FINISH)
        self._timer.pause()
        self._connect_cue = None
        self._complete("early_exit")

    def reconnect(self) -> None:
        """Leave ERROR by re-establishing the transport."""
        if self._fsm.state != OrchestratorState.ERROR or not self._voice:
            return
        self._begin_connect("reconnect", self._resume_cue())

    async def close(self) -> None:
        """Tear the session down. Safe from any state."""
        if self._fsm.state == OrchestratorState.CLOSED:
            return

        self._cancellation.cancel(CancelReason.SESSION_CLOSE)
        self._timer.dispose()
        self._connect_cue = None

        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done():
            task.cancel()

        self._fsm.transition_to(OrchestratorState.CLOSED, "close")
        self._end_session("closed")

        if self._transport is not None:
            try:
                await self._transport.disconnect()
            except Exception as e:
                logger.warning(
                    "transport_disconnect_failed",
                    session_id=self._session_id,
                    error=str(e),
                )

    # ------------------------------------------------------------------
    # Timer callbacks
    # ------------------------------------------------------------------

    def on_timer_tick(self, remaining: int) -> None:
        if self._fsm.state != OrchestratorState.RUNNING:
            return

        index = self._index
        half = self.current_pose.duration // 2
        breaths = self._flow.timer_mode == TimerMode.BREATHS

        if breaths and remaining == 1:
            if self._mark(index, LAST_BREATH):
                self._send_cue(LastBreath())
            return

        # In breath mode a halfway point of 1 coincides with the last breath
        if half <= 0 or (breaths and half == 1):
            return
        if 0 < remaining <= half and self._mark(index, HALFWAY):
            self._send_cue(Halfway())

    def on_timer_complete(self) -> None:
        if self._fsm.state != OrchestratorState.RUNNING:
            return

        if self._narrating or self._inflight_seq is not None:
            self._cancellation.cancel(CancelReason.PREEMPT)

        if self._index >= self._flow.last_index:
            self._complete("completed")
            return

        self._set_index(self._index + 1, "timer_complete")
        self._fsm.transition_to(OrchestratorState.READY, "timer_complete")
        self._arm_barrier(advance_for(self.current_pose))

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def on_transport_event(self, event: TransportEvent) -> None:
        if self._fsm.state == OrchestratorState.CLOSED:
            return

        if isinstance(event, StatusChanged):
            if (
                event.new_status == TransportStatus.CONNECTED
                and self._fsm.state == OrchestratorState.CONNECTING
                and self._connect_cue is not None
            ):
                self._on_connected()
        elif isinstance(event, ContinuationReceived):
            self._on_continuation(event.cue_seq)
        elif isinstance(event, NarrationStarted):
            self._narrating = True
        elif isinstance(event, NarrationFinished):
            self._narrating = False
            if event.cue_seq is not None and event.cue_seq == self._inflight_seq:
                self._inflight_seq = None
        elif isinstance(event, TransportFault):
            self._on_transport_fault(event)

    def _on_connected(self) -> None:
        cue_factory, self._connect_cue = self._connect_cue, None
        self._fsm.transition_to(OrchestratorState.READY, "transport_connected")
        self._arm_barrier(cue_factory(self.current_pose))

    def _on_continuation(self, seq: int | None) -> None:
        pending = self._pending
        if pending is None or (seq is not None and seq != pending.seq):
            self._cue_log.continuation_ignored(seq, pending.seq if pending else None)
            return

        waited_ms = (time.monotonic() - pending.sent_at) * 1000
        record_barrier_wait(waited_ms)
        self._cue_log.continuation_received(pending.seq, waited_ms)
        self._release_barrier("continuation")

    def _on_transport_fault(self, event: TransportFault) -> None:
        state = self._fsm.state
        if state in (OrchestratorState.IDLE, OrchestratorState.COMPLETED, OrchestratorState.ERROR):
            logger.info(
                "transport_fault_ignored",
                session_id=self._session_id,
                state=state.value,
                stage=event.stage,
            )
            return

        self._cancellation.cancel(CancelReason.TRANSPORT_ERROR)
        self._timer.pause()
        self._connect_cue = None
        self._narrating = False
        self._fsm.transition_to(
            OrchestratorState.ERROR,
            "transport_fault",
            {"stage": event.stage, "message": event.message},
        )

    # ------------------------------------------------------------------
    # Barrier
    # ------------------------------------------------------------------

    def _arm_barrier(self, cue: Cue) -> None:
        """Send a barrier cue. The timer starts on its continuation."""
        if not self._voice:
            self._release_barrier("voice_disabled")
            return

        seq = self._next_seq()
        # Pending before delivery: a continuation may arrive synchronously
        self._pending = PendingCue(seq=seq, kind=cue.kind, sent_at=time.monotonic())
        self._schedule_barrier_timeout(seq)

        if self._deliver(cue, seq):
            if cue.kind == CueKind.SESSION_START:
                self._greeted = True
        elif self._pending is not None and self._pending.seq == seq:
            # A dropped cue never gets a continuation
            self._release_barrier("cue_dropped")

    def _release_barrier(self, reason: str) -> None:
        self._clear_barrier()
        if self._fsm.state != OrchestratorState.READY:
            return
        self._fsm.transition_to(OrchestratorState.RUNNING, reason)
        self._timer.start()

    def _on_cancel(self, message: CancelMessage) -> None:
        if self._transport is not None:
            self._transport.cancel()
        self._narrating = False
        self._inflight_seq = None
        self._clear_barrier()
        logger.debug("cancel_applied", **message.to_dict())

    def _clear_barrier(self) -> None:
        self._pending = None
        handle, self._barrier_handle = self._barrier_handle, None
        if handle is not None:
            handle.cancel()

    def _schedule_barrier_timeout(self, seq: int) -> None:
        if self._barrier_handle is not None:
            self._barrier_handle.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._barrier_handle = None
            return
        self._barrier_handle = loop.call_later(
            self._barrier_timeout_s,
            self._on_barrier_timeout,
            seq,
        )

    def _on_barrier_timeout(self, seq: int) -> None:
        if self._pending is None or self._pending.seq != seq:
            return
        self._barrier_handle = None
        self._cue_log.barrier_timeout(seq, self._barrier_timeout_s)
        record_barrier_timeout()
        self._release_barrier("barrier_timeout")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_connect(self, reason: str, cue_factory: Callable[[FlowPose], Cue]) -> None:
        self._connect_cue = cue_factory
        self._fsm.transition_to(OrchestratorState.CONNECTING, reason)

        if self._transport.is_connected:
            self._on_connected()
            return

        if self._connect_task is not None and not self._connect_task.done():
            return
        task = asyncio.get_running_loop().create_task(self._transport.connect())
        task.add_done_callback(self._on_connect_done)
        self._connect_task = task

    def _on_connect_done(self, task: asyncio.Task) -> None:
        if self._connect_task is task:
            self._connect_task = None
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # connect() reports its own faults; this is an implementation bug
            logger.error(
                "transport_connect_raised",
                session_id=self._session_id,
                error=str(error),
            )
            self.on_transport_event(TransportFault(stage="connect", message=str(error)))

    def _resume_cue(self) -> Callable[[FlowPose], Cue]:
        return pose_announce_for if self._greeted else session_start_for

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _send_cue(self, cue: Cue) -> bool:
        """Send a cue that does not gate the timer."""
        if not self._voice:
            return False
        seq = self._next_seq()
        delivered = self._deliver(cue, seq)
        if delivered:
            self._inflight_seq = seq
        return delivered

    def _deliver(self, cue: Cue, seq: int) -> bool:
        kind = cue.kind.value
        delivered = self._transport.send_cue(cue, seq)
        if delivered:
            record_cue_sent(kind)
            self._cue_log.cue_sent(kind, seq, cue.token())
        else:
            record_cue_dropped(kind)
            self._cue_log.cue_dropped(kind, seq)
        return delivered

    def _activate(self, index: int) -> None:
        """Arm the timer for a fresh activation of a pose."""
        self._markers.discard((index, HALFWAY))
        self._markers.discard((index, LAST_BREATH))
        self._timer.reset(self._flow.poses[index].duration)

    def _mark(self, index: int, marker: str) -> bool:
        """Set a per-activation marker. False if it was already set."""
        key = (index, marker)
        if key in self._markers:
            return False
        self._markers.add(key)
        return True

    def _set_index(self, index: int, reason: str) -> None:
        self._index = index
        self._activate(index)
        pose = self.current_pose
        self._session_log.pose_changed(index, pose.pose.id, reason)
        for callback in list(self._pose_callbacks):
            self._safe_call(callback, index, pose)

    def _complete(self, reason: str) -> None:
        self._clear_barrier()
        if self._voice and self._transport.is_connected:
            self._send_cue(SessionComplete())

        self._fsm.transition_to(OrchestratorState.COMPLETED, reason)
        self._persist()
        self._end_session(reason)

        for callback in list(self._finished_callbacks):
            self._safe_call(callback, self._flow, reason)

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.append(self._flow)
        except PersistenceError as e:
            self._session_log.persistence_failed(str(e))
            for callback in list(self._persistence_callbacks):
                self._safe_call(callback, e)

    def _end_session(self, reason: str) -> None:
        if self._ended or self._started_at is None:
            return
        self._ended = True
        record_session_end(reason)
        self._session_log.session_ended(reason, time.monotonic() - self._started_at)

    def _log_transition(self, transition: StateTransition) -> None:
        self._session_log.state_change(
            transition.old_state.value,
            transition.new_state.value,
            transition.reason,
            transition.t_ms,
        )

    def _safe_call(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.warning(
                "listener_failed",
                session_id=self._session_id,
                callback=getattr(callback, "__qualname__", repr(callback)),
                error=str(e),
            )
