"""Tests for GuidedSessionOrchestrator.

Tests cover:
- Barrier protocol (no ticks before continuation)
- Cue counts over a full flow
- Halfway / LastBreath de-duplication per activation
- Pause/resume, skip, finish, close
- Transport faults, reconnect, dropped cues, barrier timeout
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from yogaflow.config.settings import Settings, get_settings
from yogaflow.exceptions import PersistenceError, SessionStateError
from yogaflow.flows.models import TimerMode
from yogaflow.flows.store import FlowStore
from yogaflow.orchestrator import (
    CancelReason,
    GuidedSessionOrchestrator,
    OrchestratorState,
    SessionSnapshot,
)
from yogaflow.protocol.cues import Advance, CueKind, PoseAnnounce, SessionStart
from yogaflow.protocol.events import NarrationStarted, TransportStatus
from yogaflow.transport.mock import MockVoiceTransport


async def settle() -> None:
    """Let pending connect tasks run."""
    for _ in range(3):
        await asyncio.sleep(0)


def tick_until_done(orchestrator: GuidedSessionOrchestrator, limit: int = 1000) -> None:
    for _ in range(limit):
        if orchestrator.state == OrchestratorState.COMPLETED:
            return
        orchestrator.timer.tick()
    raise AssertionError("flow never completed")


@pytest.fixture
def make_orchestrator(manual_timer, mock_transport):
    def _make(flow, transport=None, **kwargs):
        return GuidedSessionOrchestrator(
            flow,
            transport=transport if transport is not None else mock_transport,
            timer=manual_timer(flow),
            session_id="test-session",
            **kwargs,
        )
    return _make


class TestStart:
    """Session start and the first barrier."""

    @pytest.mark.asyncio
    async def test_start_connects_then_sends_session_start(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        assert orchestrator.state == OrchestratorState.CONNECTING

        await settle()

        assert orchestrator.state == OrchestratorState.READY
        assert mock_transport.cues == [SessionStart("Mountain Pose")]
        assert orchestrator.pending_cue_seq == mock_transport.last_seq

    @pytest.mark.asyncio
    async def test_no_ticks_before_continuation(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        ticks = []
        orchestrator.timer.on_tick(ticks.append)
        orchestrator.start()
        await settle()

        orchestrator.timer.tick()
        orchestrator.timer.tick()
        assert ticks == []
        assert orchestrator.timer.remaining == 3

        mock_transport.acknowledge()
        orchestrator.timer.tick()

        assert orchestrator.state == OrchestratorState.RUNNING
        assert ticks == [2]

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, make_orchestrator, two_pose_flow):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        with pytest.raises(SessionStateError):
            orchestrator.start()

    @pytest.mark.asyncio
    async def test_already_connected_transport_skips_connect(self, make_orchestrator, two_pose_flow, mock_transport):
        await mock_transport.connect()
        orchestrator = make_orchestrator(two_pose_flow)

        orchestrator.start()

        assert orchestrator.state == OrchestratorState.READY
        assert mock_transport.connect_count == 1
        assert mock_transport.kinds == [CueKind.SESSION_START]


class TestScenario:
    @pytest.mark.asyncio
    async def test_two_pose_flow(self, make_orchestrator, two_pose_flow, mock_transport):
        """[A(3s), B(2s)] played end to end."""
        orchestrator = make_orchestrator(two_pose_flow)
        poses = []
        finished = []
        orchestrator.on_pose_change(lambda index, pose: poses.append(index))
        orchestrator.on_flow_finished(lambda flow, reason: finished.append(reason))

        orchestrator.start()
        await settle()
        mock_transport.acknowledge()

        for _ in range(3):
            orchestrator.timer.tick()

        assert orchestrator.current_index == 1
        assert orchestrator.state == OrchestratorState.READY
        assert mock_transport.cues[-1] == Advance("Standing Forward Fold")

        mock_transport.acknowledge()
        for _ in range(2):
            orchestrator.timer.tick()

        assert orchestrator.state == OrchestratorState.COMPLETED
        assert orchestrator.current_index == 1
        assert poses == [1]
        assert finished == ["completed"]
        assert mock_transport.kinds == [
            CueKind.SESSION_START,
            CueKind.HALFWAY,
            CueKind.ADVANCE,
            CueKind.HALFWAY,
            CueKind.SESSION_COMPLETE,
        ]

    @pytest.mark.asyncio
    async def test_n_pose_flow_cue_counts(self, make_orchestrator, flow_factory):
        flow = flow_factory([2, 2, 2, 2, 2])
        transport = MockVoiceTransport(auto_ack=True)
        orchestrator = make_orchestrator(flow, transport)
        visited = [0]
        orchestrator.on_pose_change(lambda index, pose: visited.append(index))

        orchestrator.start()
        await settle()
        tick_until_done(orchestrator)

        assert visited == [0, 1, 2, 3, 4]
        assert transport.kinds.count(CueKind.ADVANCE) == 4
        assert transport.kinds.count(CueKind.SESSION_COMPLETE) == 1
        assert transport.kinds.count(CueKind.SESSION_START) == 1

    @pytest.mark.asyncio
    async def test_sided_poses_announced_with_side(self, make_orchestrator, sided_flow):
        transport = MockVoiceTransport(auto_ack=True)
        orchestrator = make_orchestrator(sided_flow, transport)

        orchestrator.start()
        await settle()
        tick_until_done(orchestrator)

        assert "[NEXT: Pigeon Pose (left side)]" in transport.tokens


class TestFireAndForgetCues:
    @pytest.mark.asyncio
    async def test_halfway_once_under_duplicate_ticks(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()

        orchestrator.on_timer_tick(5)
        orchestrator.on_timer_tick(5)
        orchestrator.on_timer_tick(4)

        assert mock_transport.kinds.count(CueKind.HALFWAY) == 1

    @pytest.mark.asyncio
    async def test_halfway_fires_again_after_reactivation(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10, 10]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.on_timer_tick(5)

        orchestrator.skip_to(0)
        mock_transport.acknowledge()
        orchestrator.on_timer_tick(5)

        assert mock_transport.kinds.count(CueKind.HALFWAY) == 2

    @pytest.mark.asyncio
    async def test_no_halfway_for_one_second_pose(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([1]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()

        assert CueKind.HALFWAY not in mock_transport.kinds
        assert orchestrator.state == OrchestratorState.COMPLETED

    @pytest.mark.asyncio
    async def test_last_breath_at_two_to_one(self, make_orchestrator, breath_flow, mock_transport):
        """Breath mode, normal pace, 4 breaths."""
        orchestrator = make_orchestrator(breath_flow)
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()

        orchestrator.timer.tick()  # 4 → 3
        orchestrator.timer.tick()  # 3 → 2
        assert CueKind.LAST_BREATH not in mock_transport.kinds

        orchestrator.timer.tick()  # 2 → 1
        assert mock_transport.kinds[-1] == CueKind.LAST_BREATH

        orchestrator.on_timer_tick(1)
        assert mock_transport.kinds.count(CueKind.LAST_BREATH) == 1

    @pytest.mark.asyncio
    async def test_two_breath_pose_skips_halfway(self, make_orchestrator, flow_factory, mock_transport):
        flow = flow_factory([2], timer_mode=TimerMode.BREATHS)
        orchestrator = make_orchestrator(flow)
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()

        orchestrator.timer.tick()

        assert mock_transport.kinds == [CueKind.SESSION_START, CueKind.LAST_BREATH]

    @pytest.mark.asyncio
    async def test_advance_preempts_narration(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()
        orchestrator.timer.tick()  # Halfway sent
        mock_transport.start_narration()
        cancels_before = mock_transport.cancel_count

        orchestrator.timer.tick()

        assert mock_transport.cancel_count == cancels_before + 1
        assert orchestrator.cancellation.last_cancel.reason == CancelReason.PREEMPT
        assert mock_transport.kinds[-1] == CueKind.ADVANCE

    @pytest.mark.asyncio
    async def test_advance_preempts_halfway_before_audio(self, make_orchestrator, two_pose_flow, mock_transport):
        """A Halfway response that has not produced audio yet is still cancelled first."""
        orchestrator = make_orchestrator(two_pose_flow)
        order = []
        orchestrator.cancellation.register(lambda msg: order.append(msg.reason))
        send_cue = mock_transport.send_cue

        def recording_send(cue, seq):
            order.append(cue.kind)
            return send_cue(cue, seq)

        mock_transport.send_cue = recording_send
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()
        orchestrator.timer.tick()
        assert order[-1] == CueKind.HALFWAY

        orchestrator.timer.tick()

        assert order[-2:] == [CancelReason.PREEMPT, CueKind.ADVANCE]

    @pytest.mark.asyncio
    async def test_finished_halfway_not_preempted(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()
        orchestrator.timer.tick()
        halfway_seq = mock_transport.last_seq
        mock_transport.start_narration(halfway_seq)
        mock_transport.finish_narration(halfway_seq)
        cancels_before = mock_transport.cancel_count

        orchestrator.timer.tick()

        assert mock_transport.cancel_count == cancels_before
        assert mock_transport.kinds[-1] == CueKind.ADVANCE

    @pytest.mark.asyncio
    async def test_last_pose_preempts_before_complete(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([4]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()
        orchestrator.timer.tick()
        assert mock_transport.kinds[-1] == CueKind.HALFWAY

        tick_until_done(orchestrator)

        assert orchestrator.cancellation.last_cancel.reason == CancelReason.PREEMPT
        assert mock_transport.kinds[-1] == CueKind.SESSION_COMPLETE


class TestPauseResume:
    @pytest.mark.asyncio
    async def test_pause_preserves_remaining(self, make_orchestrator, flow_factory, mock_transport):
        """Pause at 7 of 10 → exactly 7 more ticks after resume."""
        orchestrator = make_orchestrator(flow_factory([10]))
        ticks = []
        orchestrator.timer.on_tick(ticks.append)
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        for _ in range(3):
            orchestrator.timer.tick()

        orchestrator.pause()
        assert orchestrator.state == OrchestratorState.PAUSED
        assert orchestrator.timer.remaining == 7
        orchestrator.timer.tick()
        assert orchestrator.timer.remaining == 7

        ticks.clear()
        orchestrator.resume()
        assert orchestrator.state == OrchestratorState.READY
        assert mock_transport.cues[-1] == PoseAnnounce("Mountain Pose")

        mock_transport.acknowledge()
        tick_until_done(orchestrator)
        assert len(ticks) == 7

    @pytest.mark.asyncio
    async def test_pause_cancels_narration(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()

        orchestrator.pause()

        assert mock_transport.cancel_count == 1
        assert orchestrator.pending_cue_seq is None
        assert orchestrator.cancellation.last_cancel.reason == CancelReason.USER_PAUSE

    @pytest.mark.asyncio
    async def test_late_continuation_after_pause_ignored(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()
        seq = mock_transport.last_seq

        orchestrator.pause()
        mock_transport.acknowledge(seq)

        assert orchestrator.state == OrchestratorState.PAUSED
        assert orchestrator.timer.running is False

    @pytest.mark.asyncio
    async def test_pause_while_connecting(self, make_orchestrator, two_pose_flow):
        transport = MockVoiceTransport(connect_delay_s=0.02)
        orchestrator = make_orchestrator(two_pose_flow, transport)
        orchestrator.start()
        await settle()

        orchestrator.pause()
        await asyncio.sleep(0.05)

        assert transport.is_connected
        assert orchestrator.state == OrchestratorState.PAUSED
        assert transport.sent == []

        orchestrator.resume()
        # Never greeted, so resume opens the session
        assert transport.cues == [SessionStart("Mountain Pose")]
        assert orchestrator.state == OrchestratorState.READY

    @pytest.mark.asyncio
    async def test_toggle(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)

        orchestrator.toggle()
        await settle()
        assert orchestrator.state == OrchestratorState.READY

        orchestrator.toggle()
        assert orchestrator.state == OrchestratorState.PAUSED

        orchestrator.toggle()
        assert orchestrator.state == OrchestratorState.READY

    def test_pause_and_resume_ignored_when_idle(self, make_orchestrator, two_pose_flow):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.pause()
        orchestrator.resume()
        assert orchestrator.state == OrchestratorState.IDLE


class TestSkip:
    def test_skip_while_inactive_sends_nothing(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10, 20, 30]))

        orchestrator.next()

        assert orchestrator.current_index == 1
        assert orchestrator.timer.remaining == 20
        assert mock_transport.sent == []
        assert orchestrator.state == OrchestratorState.IDLE

    @pytest.mark.asyncio
    async def test_skip_while_paused_sends_nothing(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10, 20, 30]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.pause()
        sent = len(mock_transport.sent)

        orchestrator.skip_to(2)

        assert orchestrator.current_index == 2
        assert orchestrator.timer.remaining == 30
        assert len(mock_transport.sent) == sent

        orchestrator.resume()
        assert mock_transport.cues[-1] == PoseAnnounce("Downward-Facing Dog")

    @pytest.mark.asyncio
    async def test_skip_while_running_sends_one_advance(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10, 20, 30]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()
        sent = len(mock_transport.sent)

        orchestrator.next()

        assert len(mock_transport.sent) == sent + 1
        assert mock_transport.kinds[-1] == CueKind.ADVANCE
        assert orchestrator.state == OrchestratorState.READY
        assert orchestrator.timer.remaining == 20
        assert orchestrator.timer.running is False

    @pytest.mark.asyncio
    async def test_skip_replaces_pending_barrier(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10, 20, 30]))
        orchestrator.start()
        await settle()
        first_seq = mock_transport.last_seq

        orchestrator.next()
        mock_transport.acknowledge(first_seq)
        assert orchestrator.state == OrchestratorState.READY

        mock_transport.acknowledge()
        assert orchestrator.state == OrchestratorState.RUNNING

    def test_skip_clamps(self, make_orchestrator, flow_factory):
        orchestrator = make_orchestrator(flow_factory([10, 20]))

        orchestrator.previous()
        assert orchestrator.current_index == 0

        orchestrator.skip_to(99)
        assert orchestrator.current_index == 1

        orchestrator.next()
        assert orchestrator.current_index == 1

    @pytest.mark.asyncio
    async def test_skip_while_connecting_announces_new_pose(self, make_orchestrator, flow_factory):
        transport = MockVoiceTransport(connect_delay_s=0.01)
        orchestrator = make_orchestrator(flow_factory([10, 20]), transport)
        orchestrator.start()

        orchestrator.next()
        await asyncio.sleep(0.03)

        assert transport.cues == [SessionStart("Standing Forward Fold")]


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()

        orchestrator.cancellation.cancel(CancelReason.USER_PAUSE)
        orchestrator.cancellation.cancel(CancelReason.USER_PAUSE)

        assert mock_transport.cancel_count == 2
        assert orchestrator.pending_cue_seq is None
        assert orchestrator.state == OrchestratorState.READY


class TestBarrierRecovery:
    @pytest.mark.asyncio
    async def test_stale_seq_ignored(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()

        mock_transport.acknowledge(seq=999)
        assert orchestrator.state == OrchestratorState.READY

        mock_transport.acknowledge(seq=None)
        # No sent cues carry None; the transport falls back to the last seq
        assert orchestrator.state == OrchestratorState.RUNNING

    @pytest.mark.asyncio
    async def test_unattributed_continuation_accepted(self, make_orchestrator, two_pose_flow, mock_transport):
        from yogaflow.protocol.events import ContinuationReceived

        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()

        orchestrator.on_transport_event(ContinuationReceived(cue_seq=None))

        assert orchestrator.state == OrchestratorState.RUNNING

    @pytest.mark.asyncio
    async def test_barrier_timeout_starts_timer(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow, barrier_timeout_s=0.02)
        orchestrator.start()
        await settle()
        assert orchestrator.state == OrchestratorState.READY

        await asyncio.sleep(0.05)

        assert orchestrator.state == OrchestratorState.RUNNING
        assert orchestrator.timer.running is True

    @pytest.mark.asyncio
    async def test_continuation_cancels_barrier_timeout(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10, 10]), barrier_timeout_s=0.02)
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.pause()

        await asyncio.sleep(0.05)

        assert orchestrator.state == OrchestratorState.PAUSED

    @pytest.mark.asyncio
    async def test_dropped_cue_releases_barrier(self, make_orchestrator, two_pose_flow):
        class DroppingTransport(MockVoiceTransport):
            def send_cue(self, cue, seq):
                return False

        transport = DroppingTransport()
        orchestrator = make_orchestrator(two_pose_flow, transport)
        orchestrator.start()
        await settle()

        assert orchestrator.state == OrchestratorState.RUNNING
        assert orchestrator.pending_cue_seq is None


class TestTransportFaults:
    @pytest.mark.asyncio
    async def test_fault_enters_error_and_preserves_index(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10, 10]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.next()
        mock_transport.acknowledge()
        orchestrator.timer.tick()

        mock_transport.fail("peer", "ice failed")

        assert orchestrator.state == OrchestratorState.ERROR
        assert orchestrator.current_index == 1
        assert orchestrator.timer.running is False
        assert orchestrator.timer.remaining == 9
        assert orchestrator.history[-1].metadata == {"stage": "peer", "message": "ice failed"}

    @pytest.mark.asyncio
    async def test_reconnect_resumes_hold(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([10]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()
        mock_transport.fail()

        orchestrator.reconnect()
        assert orchestrator.state == OrchestratorState.CONNECTING
        await settle()

        assert orchestrator.state == OrchestratorState.READY
        assert mock_transport.cues[-1] == PoseAnnounce("Mountain Pose")
        mock_transport.acknowledge()
        assert orchestrator.timer.remaining == 9
        assert orchestrator.state == OrchestratorState.RUNNING

    @pytest.mark.asyncio
    async def test_connect_failure(self, make_orchestrator, two_pose_flow):
        transport = MockVoiceTransport(fail_connect=True)
        orchestrator = make_orchestrator(two_pose_flow, transport)
        orchestrator.start()
        await settle()

        assert orchestrator.state == OrchestratorState.ERROR
        assert transport.status == TransportStatus.ERROR
        assert orchestrator.history[-1].metadata["stage"] == "bootstrap"

    @pytest.mark.asyncio
    async def test_fault_after_completion_ignored(self, make_orchestrator, flow_factory, mock_transport):
        orchestrator = make_orchestrator(flow_factory([1]))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()
        orchestrator.timer.tick()

        mock_transport.fail()

        assert orchestrator.state == OrchestratorState.COMPLETED

    def test_reconnect_ignored_outside_error(self, make_orchestrator, two_pose_flow):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.reconnect()
        assert orchestrator.state == OrchestratorState.IDLE


class TestVoiceDisabled:
    def test_runs_without_transport(self, manual_timer, two_pose_flow):
        orchestrator = GuidedSessionOrchestrator(two_pose_flow, timer=manual_timer(two_pose_flow))

        orchestrator.start()
        assert orchestrator.state == OrchestratorState.RUNNING

        tick_until_done(orchestrator)
        assert orchestrator.current_index == 1

    def test_flow_voice_disabled_sends_nothing(self, make_orchestrator, flow_factory, mock_transport):
        flow = flow_factory([2, 2], voice_enabled=False)
        orchestrator = make_orchestrator(flow)

        orchestrator.start()
        tick_until_done(orchestrator)

        assert mock_transport.sent == []
        assert mock_transport.connect_count == 0
        assert orchestrator.snapshot().voice_enabled is False

    def test_pause_resume_without_voice(self, manual_timer, flow_factory):
        flow = flow_factory([5], voice_enabled=False)
        orchestrator = GuidedSessionOrchestrator(flow, timer=manual_timer(flow))
        orchestrator.start()
        orchestrator.timer.tick()

        orchestrator.pause()
        orchestrator.resume()

        assert orchestrator.state == OrchestratorState.RUNNING
        assert orchestrator.timer.remaining == 4


class TestFinishAndClose:
    @pytest.mark.asyncio
    async def test_finish_persists_flow(self, make_orchestrator, two_pose_flow, mock_transport, flow_store):
        orchestrator = make_orchestrator(two_pose_flow, store=flow_store)
        finished = []
        orchestrator.on_flow_finished(lambda flow, reason: finished.append((flow.id, reason)))
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()

        orchestrator.finish()

        assert orchestrator.state == OrchestratorState.COMPLETED
        assert finished == [(two_pose_flow.id, "early_exit")]
        assert [f.id for f in flow_store.list()] == [two_pose_flow.id]
        assert mock_transport.kinds[-1] == CueKind.SESSION_COMPLETE
        assert orchestrator.cancellation.last_cancel.reason == CancelReason.USER_FINISH

    def test_finish_from_idle(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.finish()

        assert orchestrator.state == OrchestratorState.COMPLETED
        assert mock_transport.sent == []

    @pytest.mark.asyncio
    async def test_completed_flow_persisted(self, make_orchestrator, flow_factory, flow_store):
        transport = MockVoiceTransport(auto_ack=True)
        orchestrator = make_orchestrator(flow_factory([1, 1]), transport, store=flow_store)
        orchestrator.start()
        await settle()
        tick_until_done(orchestrator)

        assert len(flow_store.list()) == 1

    def test_persistence_error_reported(self, make_orchestrator, two_pose_flow):
        store = MagicMock()
        store.append.side_effect = PersistenceError("write", "/ro/flows.json", "read-only")
        orchestrator = make_orchestrator(two_pose_flow, store=store)
        errors = []
        orchestrator.on_persistence_error(errors.append)

        orchestrator.finish()

        assert orchestrator.state == OrchestratorState.COMPLETED
        assert len(errors) == 1
        assert errors[0].operation == "write"

    def test_actions_after_completion_ignored(self, make_orchestrator, two_pose_flow):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.finish()

        orchestrator.next()
        orchestrator.finish()
        orchestrator.pause()

        assert orchestrator.state == OrchestratorState.COMPLETED
        assert orchestrator.current_index == 0

    @pytest.mark.asyncio
    async def test_close_disconnects(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()
        mock_transport.acknowledge()

        await orchestrator.close()
        await orchestrator.close()

        assert orchestrator.state == OrchestratorState.CLOSED
        assert mock_transport.disconnect_count == 1
        assert orchestrator.timer.running is False

        mock_transport.acknowledge()
        orchestrator.on_transport_event(NarrationStarted())
        assert orchestrator.state == OrchestratorState.CLOSED

    @pytest.mark.asyncio
    async def test_close_while_connecting(self, make_orchestrator, two_pose_flow):
        transport = MockVoiceTransport(connect_delay_s=0.05)
        orchestrator = make_orchestrator(two_pose_flow, transport)
        orchestrator.start()
        await settle()

        await orchestrator.close()
        await asyncio.sleep(0.07)

        assert orchestrator.state == OrchestratorState.CLOSED
        assert transport.sent == []


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot(self, make_orchestrator, two_pose_flow, mock_transport):
        orchestrator = make_orchestrator(two_pose_flow)
        orchestrator.start()
        await settle()

        snapshot = orchestrator.snapshot()

        assert isinstance(snapshot, SessionSnapshot)
        assert snapshot.session_id == "test-session"
        assert snapshot.state == OrchestratorState.READY
        assert snapshot.current_index == 0
        assert snapshot.total_poses == 2
        assert snapshot.active is True
        assert snapshot.transport_status == TransportStatus.CONNECTED
        assert snapshot.timer.remaining == 3
        assert snapshot.pending_cue_seq == mock_transport.last_seq
        assert snapshot.voice_enabled is True

    def test_listener_failure_isolated(self, make_orchestrator, two_pose_flow):
        orchestrator = make_orchestrator(two_pose_flow)

        def broken(index, pose):
            raise RuntimeError("ui bug")

        orchestrator.on_pose_change(broken)
        orchestrator.next()

        assert orchestrator.current_index == 1


class TestRealTimer:
    @pytest.mark.asyncio
    async def test_flow_completes_with_scheduled_timer(self, flow_factory):
        transport = MockVoiceTransport(auto_ack=True)
        orchestrator = GuidedSessionOrchestrator(
            flow_factory([2, 2]),
            transport=transport,
            time_scale=0.01,
        )
        done = asyncio.Event()
        orchestrator.on_flow_finished(lambda flow, reason: done.set())

        orchestrator.start()
        await asyncio.wait_for(done.wait(), timeout=2.0)

        assert orchestrator.state == OrchestratorState.COMPLETED
        assert transport.kinds.count(CueKind.ADVANCE) == 1
        await orchestrator.close()


class TestFromSettings:
    @pytest.fixture
    def settings(self, tmp_path):
        return Settings(
            _env_file=None,
            voice_transport="mock",
            flow_store_path=str(tmp_path / "flows.json"),
            barrier_timeout_s=0.02,
        )

    @pytest.mark.asyncio
    async def test_barrier_timeout_from_settings(self, settings, two_pose_flow):
        orchestrator = GuidedSessionOrchestrator.from_settings(two_pose_flow, settings, session_id="s1")
        orchestrator.transport.auto_ack = False
        orchestrator.start()
        await settle()
        assert orchestrator.state == OrchestratorState.READY

        await asyncio.sleep(0.05)

        assert orchestrator.state == OrchestratorState.RUNNING
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_persists_to_configured_store(self, settings, two_pose_flow, tmp_path):
        orchestrator = GuidedSessionOrchestrator.from_settings(two_pose_flow, settings)
        assert isinstance(orchestrator.transport, MockVoiceTransport)

        orchestrator.finish()

        assert FlowStore(tmp_path / "flows.json").get(two_pose_flow.id) is not None

    def test_voice_disabled_gets_no_transport(self, settings, flow_factory):
        orchestrator = GuidedSessionOrchestrator.from_settings(
            flow_factory([2], voice_enabled=False), settings
        )
        assert orchestrator.transport is None

    def test_default_timeout_reads_environment(self, monkeypatch, manual_timer, two_pose_flow):
        monkeypatch.setenv("BARRIER_TIMEOUT_S", "2.5")
        get_settings.cache_clear()

        orchestrator = GuidedSessionOrchestrator(two_pose_flow, timer=manual_timer(two_pose_flow))

        assert orchestrator._barrier_timeout_s == 2.5
