"""Timer Engine - countable pose hold in seconds or breath cycles.

Contract:
- reset(duration): stop everything, remaining=duration, phase=inhale
- start(): begin counting; no-op while running or once the activation completed
- pause(): stop counting, keep remaining
- one on_tick per unit (1s, or one full breath in breath mode)
- exactly one on_complete per activation, when remaining reaches 0
- breath mode also emits on_phase at half-breath and on_progress every 50ms

The engine runs on the asyncio loop of its caller. All state changes happen
synchronously inside the caller's turn or inside the engine's own tasks,
never concurrently.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from yogaflow.config.constants import FLOW
from yogaflow.flows.models import BreathPace, TimerMode
from yogaflow.observability.logging import get_logger

logger = get_logger(__name__)


class BreathPhase(Enum):
    """Visual breath phase (animation only)."""

    INHALE = "inhale"
    EXHALE = "exhale"

    def toggled(self) -> "BreathPhase":
        return BreathPhase.EXHALE if self == BreathPhase.INHALE else BreathPhase.INHALE


@dataclass(frozen=True)
class TimerState:
    """Snapshot of the timer."""

    remaining: int
    duration: int
    running: bool
    phase: BreathPhase
    elapsed_fraction: float


TickCallback = Callable[[int], None]
CompleteCallback = Callable[[], None]
PhaseCallback = Callable[[BreathPhase], None]
ProgressCallback = Callable[[float], None]


class TimerEngine:
    """Countdown for one pose at a time.

    Usage:
        timer = TimerEngine(TimerMode.BREATHS, BreathPace.NORMAL)
        timer.on_tick(lambda remaining: ...)
        timer.on_complete(advance)

        timer.reset(pose.duration)
        timer.start()
    """

    def __init__(
        self,
        mode: TimerMode,
        breath_pace: BreathPace = BreathPace.NORMAL,
        time_scale: float = 1.0,
        progress_interval_s: float = FLOW.PROGRESS_SAMPLE_MS / 1000.0,
    ) -> None:
        if time_scale <= 0:
            raise ValueError("time_scale must be positive")

        self._mode = mode
        self._breath_pace = breath_pace
        base_unit = breath_pace.seconds if mode == TimerMode.BREATHS else FLOW.SECOND_UNIT_S
        self._unit_s = base_unit * time_scale
        self._progress_interval_s = progress_interval_s

        self._duration = 0
        self._remaining = 0
        self._running = False
        self._completed = False
        self._phase = BreathPhase.INHALE
        self._elapsed_fraction = 0.0

        # Wall-clock accounting for smooth progress
        self._elapsed_s = 0.0
        self._run_started: float | None = None

        # Part of the current unit already held before a pause
        self._unit_elapsed_s = 0.0
        self._unit_started: float | None = None

        # Incremented on every reset; stale tasks compare against it
        self._activation = 0
        self._tasks: list[asyncio.Task] = []

        self._tick_callbacks: list[TickCallback] = []
        self._complete_callbacks: list[CompleteCallback] = []
        self._phase_callbacks: list[PhaseCallback] = []
        self._progress_callbacks: list[ProgressCallback] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on_tick(self, callback: TickCallback) -> None:
        """Register callback receiving the new remaining count after each unit."""
        self._tick_callbacks.append(callback)

    def on_complete(self, callback: CompleteCallback) -> None:
        """Register callback for the single completion of an activation."""
        self._complete_callbacks.append(callback)

    def on_phase(self, callback: PhaseCallback) -> None:
        """Register callback for breath phase toggles (breath mode only)."""
        self._phase_callbacks.append(callback)

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register callback for sampled progress (breath mode only)."""
        self._progress_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def mode(self) -> TimerMode:
        return self._mode

    @property
    def unit_s(self) -> float:
        """Wall-clock length of one unit (after time scaling)."""
        return self._unit_s

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def duration(self) -> int:
        return self._duration

    @property
    def running(self) -> bool:
        return self._running

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def phase(self) -> BreathPhase:
        return self._phase

    @property
    def progress(self) -> float:
        """Fraction of the hold elapsed, 0..1."""
        if self._mode == TimerMode.BREATHS:
            return self._sample_progress()
        if self._duration <= 0:
            return 1.0 if self._completed else 0.0
        return 1.0 - self._remaining / self._duration

    def state(self) -> TimerState:
        return TimerState(
            remaining=self._remaining,
            duration=self._duration,
            running=self._running,
            phase=self._phase,
            elapsed_fraction=self.progress,
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def reset(self, duration: int) -> None:
        """Arm a new activation. Cancels any in-flight countdown."""
        if duration < 0:
            raise ValueError("duration must be >= 0")

        self._cancel_tasks()
        self._activation += 1
        self._duration = duration
        self._remaining = duration
        self._running = False
        self._completed = False
        self._phase = BreathPhase.INHALE
        self._elapsed_fraction = 0.0
        self._elapsed_s = 0.0
        self._run_started = None
        self._unit_elapsed_s = 0.0
        self._unit_started = None

    def start(self) -> None:
        """Start or resume counting down.

        A zero-length activation completes immediately without ticking.
        """
        if self._running or self._completed:
            return

        if self._remaining <= 0:
            self._finish()
            return

        self._running = True
        self._run_started = time.monotonic()
        self._unit_started = self._run_started
        self._schedule()

    def pause(self) -> None:
        """Stop counting; remaining and the partial unit are preserved."""
        if not self._running:
            return

        self._cancel_tasks()
        self._sample_progress()
        if self._run_started is not None:
            self._elapsed_s += time.monotonic() - self._run_started
            self._run_started = None
        if self._unit_started is not None:
            held = self._unit_elapsed_s + time.monotonic() - self._unit_started
            self._unit_elapsed_s = min(held, self._unit_s)
            self._unit_started = None
        self._running = False

    def tick(self) -> None:
        """Advance one unit. Ignored while not running."""
        if not self._running:
            return

        activation = self._activation
        self._remaining -= 1
        self._unit_elapsed_s = 0.0
        self._unit_started = time.monotonic()
        self._emit(self._tick_callbacks, self._remaining)

        # A tick listener may have reset or paused us
        if activation != self._activation or not self._running:
            return

        if self._remaining <= 0:
            self._finish()

    def dispose(self) -> None:
        """Stop and discard all scheduled work and listeners."""
        self._cancel_tasks()
        self._activation += 1
        self._running = False
        self._run_started = None
        self._unit_started = None
        self._tick_callbacks.clear()
        self._complete_callbacks.clear()
        self._phase_callbacks.clear()
        self._progress_callbacks.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finish(self) -> None:
        self._cancel_tasks()
        if self._run_started is not None:
            self._elapsed_s += time.monotonic() - self._run_started
            self._run_started = None
        self._running = False
        self._unit_started = None
        self._remaining = 0
        self._completed = True
        self._elapsed_fraction = 1.0
        self._emit(self._complete_callbacks)

    def _sample_progress(self) -> float:
        total_s = self._duration * self._unit_s
        if total_s <= 0:
            fraction = 1.0 if self._completed else 0.0
        else:
            elapsed = self._elapsed_s
            if self._running and self._run_started is not None:
                elapsed += time.monotonic() - self._run_started
            fraction = min(elapsed / total_s, 1.0)

        # Monotonic within an activation
        self._elapsed_fraction = max(self._elapsed_fraction, fraction)
        return self._elapsed_fraction

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        activation = self._activation
        self._tasks.append(loop.create_task(self._run_countdown(activation)))
        if self._mode == TimerMode.BREATHS:
            self._tasks.append(loop.create_task(self._run_phases(activation)))
            self._tasks.append(loop.create_task(self._run_progress(activation)))

    def _is_live(self, activation: int) -> bool:
        return self._running and self._activation == activation

    async def _run_countdown(self, activation: int) -> None:
        while self._is_live(activation):
            await asyncio.sleep(self._unit_s - self._unit_elapsed_s)
            if not self._is_live(activation):
                return
            self.tick()

    async def _run_phases(self, activation: int) -> None:
        half_s = self._unit_s / 2
        delay = half_s - self._unit_elapsed_s % half_s
        while self._is_live(activation):
            await asyncio.sleep(delay)
            delay = half_s
            if not self._is_live(activation):
                return
            self._phase = self._phase.toggled()
            self._emit(self._phase_callbacks, self._phase)

    async def _run_progress(self, activation: int) -> None:
        while self._is_live(activation):
            await asyncio.sleep(self._progress_interval_s)
            if not self._is_live(activation):
                return
            self._emit(self._progress_callbacks, self._sample_progress())

    def _cancel_tasks(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if not task.done():
                task.cancel()

    def _emit(self, callbacks: list[Callable[..., Any]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as e:
                # Listener faults must not stop the countdown
                logger.warning(
                    "timer_callback_failed",
                    callback=getattr(callback, "__qualname__", repr(callback)),
                    error=str(e),
                )
