"""Flows module - pose catalog, flow generation, persistence.

Provides:
- Flow / FlowPose / Pose: data model
- generate_flow: preferences → ordered flow
- FlowStore: persisted session history
- build_instructions: narration agent system prompt
"""

from yogaflow.flows.generator import calculate_flow_duration, generate_flow, generate_test_flow
from yogaflow.flows.instructions import build_instructions
from yogaflow.flows.models import (
    BreathPace,
    Difficulty,
    FocusArea,
    Flow,
    FlowOptions,
    FlowPose,
    Pose,
    PoseCategory,
    Side,
    TimerMode,
)
from yogaflow.flows.store import FlowStore

__all__ = [
    # Model
    "BreathPace",
    "Difficulty",
    "FocusArea",
    "Flow",
    "FlowOptions",
    "FlowPose",
    "Pose",
    "PoseCategory",
    "Side",
    "TimerMode",
    # Generation
    "generate_flow",
    "generate_test_flow",
    "calculate_flow_duration",
    "build_instructions",
    # Persistence
    "FlowStore",
]
