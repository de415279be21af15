"""Timer module - pose hold countdown."""

from yogaflow.timer.engine import BreathPhase, TimerEngine, TimerState

__all__ = ["BreathPhase", "TimerEngine", "TimerState"]
