"""Pytest configuration and shared fixtures."""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing settings
os.environ.update({
    "ENVIRONMENT": "development",
    "VOICE_TRANSPORT": "mock",  # No network in unit tests
    "METRICS_ENABLED": "false",
    "LOG_LEVEL": "WARNING",
})

from yogaflow.config.settings import get_settings  # noqa: E402
from yogaflow.flows.catalog import get_pose  # noqa: E402
from yogaflow.flows.models import BreathPace, Flow, FlowPose, Side, TimerMode  # noqa: E402
from yogaflow.flows.store import FlowStore  # noqa: E402
from yogaflow.timer.engine import TimerEngine  # noqa: E402
from yogaflow.transport.mock import MockVoiceTransport  # noqa: E402


class ManualTimer(TimerEngine):
    """TimerEngine whose units are advanced by the test calling tick()."""

    def _schedule(self) -> None:
        pass


def make_flow(
    durations: list[int],
    timer_mode: TimerMode = TimerMode.SECONDS,
    voice_enabled: bool = True,
    pose_ids: list[str] | None = None,
) -> Flow:
    """Flow of catalog poses with explicit hold durations."""
    ids = pose_ids or ["mountain", "forward-fold", "downward-dog", "childs-pose", "corpse"]
    return Flow(
        poses=[
            FlowPose(get_pose(ids[i % len(ids)]), duration)
            for i, duration in enumerate(durations)
        ],
        timer_mode=timer_mode,
        breath_pace=BreathPace.NORMAL,
        voice_enabled=voice_enabled,
        duration=1,
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Every test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def flow_factory():
    """Build flows from explicit hold durations."""
    return make_flow


@pytest.fixture
def two_pose_flow() -> Flow:
    """[A(3s), B(2s)]"""
    return make_flow([3, 2], pose_ids=["mountain", "forward-fold"])


@pytest.fixture
def breath_flow() -> Flow:
    """Single pose held for 4 breaths at normal pace."""
    return make_flow([4], timer_mode=TimerMode.BREATHS, pose_ids=["childs-pose"])


@pytest.fixture
def sided_flow() -> Flow:
    pigeon = get_pose("pigeon")
    return Flow(
        poses=[
            FlowPose(pigeon, 3, Side.RIGHT),
            FlowPose(pigeon, 3, Side.LEFT),
        ],
        timer_mode=TimerMode.SECONDS,
    )


@pytest.fixture
def manual_timer():
    """Factory for timers driven by explicit tick() calls."""
    def _make(flow: Flow) -> ManualTimer:
        return ManualTimer(flow.timer_mode, flow.breath_pace)
    return _make


@pytest.fixture
def mock_transport() -> MockVoiceTransport:
    return MockVoiceTransport(session_id="test-session")


@pytest.fixture
def flow_store(tmp_path) -> FlowStore:
    return FlowStore(tmp_path / "flows.json")


@pytest.fixture
def client(tmp_path, monkeypatch) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with storage under tmp_path."""
    monkeypatch.setenv("FLOW_STORE_PATH", str(tmp_path / "flows.json"))
    monkeypatch.setenv("NARRATION_CACHE_DIR", str(tmp_path / "narration"))
    get_settings.cache_clear()

    from yogaflow.api.routes import flows, realtime, tts
    from yogaflow.main import create_app

    flows._flow_store = None
    realtime._session_client = None
    tts._narrator = None

    with TestClient(create_app()) as c:
        yield c

    flows._flow_store = None
    realtime._session_client = None
    tts._narrator = None
