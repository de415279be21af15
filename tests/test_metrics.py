"""Tests for Prometheus Metrics.

Tests cover:
- Helper function invocations
- Counter and histogram recording
- Build info setting
"""

import pytest
from prometheus_client import REGISTRY

from yogaflow.observability.metrics import (
    record_barrier_timeout,
    record_barrier_wait,
    record_connect_latency,
    record_cue_dropped,
    record_cue_sent,
    record_narration_cache,
    record_session_end,
    record_session_start,
    record_transport_error,
    set_build_info,
)


def sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestSessionMetrics:
    def test_start_and_end_balance_active_gauge(self):
        active = sample("yogaflow_active_sessions")
        started = sample("yogaflow_sessions_started_total")

        record_session_start()
        assert sample("yogaflow_active_sessions") == active + 1
        assert sample("yogaflow_sessions_started_total") == started + 1

        record_session_end("completed")
        assert sample("yogaflow_active_sessions") == active
        assert sample("yogaflow_sessions_ended_total", {"reason": "completed"}) >= 1


class TestCueMetrics:
    def test_cue_sent_by_kind(self):
        before = sample("yogaflow_cues_sent_total", {"kind": "advance"})
        record_cue_sent("advance")
        assert sample("yogaflow_cues_sent_total", {"kind": "advance"}) == before + 1

    def test_cue_dropped_by_kind(self):
        before = sample("yogaflow_cues_dropped_total", {"kind": "halfway"})
        record_cue_dropped("halfway")
        assert sample("yogaflow_cues_dropped_total", {"kind": "halfway"}) == before + 1

    def test_barrier_wait_recorded_in_seconds(self):
        before = sample("yogaflow_barrier_wait_seconds_sum")
        record_barrier_wait(1500.0)
        assert sample("yogaflow_barrier_wait_seconds_sum") == pytest.approx(before + 1.5)

    def test_barrier_timeout(self):
        before = sample("yogaflow_barrier_timeouts_total")
        record_barrier_timeout()
        assert sample("yogaflow_barrier_timeouts_total") == before + 1


class TestTransportMetrics:
    def test_transport_error_by_stage(self):
        before = sample("yogaflow_transport_errors_total", {"stage": "sdp"})
        record_transport_error("sdp")
        assert sample("yogaflow_transport_errors_total", {"stage": "sdp"}) == before + 1

    def test_connect_latency(self):
        before = sample("yogaflow_transport_connect_seconds_count")
        record_connect_latency(250.0)
        assert sample("yogaflow_transport_connect_seconds_count") == before + 1


class TestNarrationMetrics:
    def test_cache_results(self):
        for result in ("hit", "miss", "corrupt"):
            before = sample("yogaflow_narration_cache_total", {"result": result})
            record_narration_cache(result)
            assert sample("yogaflow_narration_cache_total", {"result": result}) == before + 1


class TestBuildInfo:
    def test_set_build_info(self):
        set_build_info("0.3.0", "abc123", "2026-01-01T00:00:00Z")

        assert sample(
            "yogaflow_build_info",
            {"version": "0.3.0", "commit": "abc123", "build_time": "2026-01-01T00:00:00Z"},
        ) == 1.0
