"""Flow data model - poses, scheduled poses and flows.

A Flow is created by the generator, read-only during playback and
persisted as a whole on completion or early exit. All types serialise to
plain dicts for the JSON flow store.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from yogaflow.config.constants import FLOW
from yogaflow.exceptions import EmptyFlowError


class TimerMode(Enum):
    """Unit in which pose holds are counted."""

    SECONDS = "seconds"
    BREATHS = "breaths"


class BreathPace(Enum):
    """Configured duration of one full breath."""

    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"

    @property
    def seconds(self) -> int:
        """Seconds per breath (inhale + exhale)."""
        return BREATH_PACE_SECONDS[self]


BREATH_PACE_SECONDS: dict[BreathPace, int] = {
    BreathPace.SLOW: FLOW.BREATH_SLOW_S,
    BreathPace.NORMAL: FLOW.BREATH_NORMAL_S,
    BreathPace.FAST: FLOW.BREATH_FAST_S,
}


class Side(Enum):
    """Body side for asymmetric poses."""

    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


class Difficulty(Enum):
    """Pose / flow difficulty, ordered."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return list(Difficulty).index(self)


class FocusArea(Enum):
    """Body areas a flow can target."""

    LOWER_BACK = "lower-back"
    UPPER_BACK = "upper-back"
    SHOULDERS = "shoulders"
    HIPS = "hips"
    HAMSTRINGS = "hamstrings"
    FULL_BODY = "full-body"


class PoseCategory(Enum):
    """Catalog grouping used for phase transitions."""

    WARMUP = "warmup"
    STANDING = "standing"
    SEATED = "seated"
    SUPINE = "supine"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class Pose:
    """Static catalog entry."""

    id: str
    english_name: str
    sanskrit_name: str
    description: str
    difficulty: Difficulty
    focus_areas: tuple[FocusArea, ...]
    category: PoseCategory
    default_duration: int  # seconds
    default_breaths: int
    has_sides: bool = False

    def targets(self, focus_areas: list[FocusArea]) -> bool:
        """Whether this pose serves any of the requested focus areas."""
        if FocusArea.FULL_BODY in focus_areas or FocusArea.FULL_BODY in self.focus_areas:
            return True
        return any(area in focus_areas for area in self.focus_areas)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "english_name": self.english_name,
            "sanskrit_name": self.sanskrit_name,
            "description": self.description,
            "difficulty": self.difficulty.value,
            "focus_areas": [area.value for area in self.focus_areas],
            "category": self.category.value,
            "default_duration": self.default_duration,
            "default_breaths": self.default_breaths,
            "has_sides": self.has_sides,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pose":
        return cls(
            id=data["id"],
            english_name=data["english_name"],
            sanskrit_name=data.get("sanskrit_name", ""),
            description=data.get("description", ""),
            difficulty=Difficulty(data["difficulty"]),
            focus_areas=tuple(FocusArea(a) for a in data.get("focus_areas", [])),
            category=PoseCategory(data["category"]),
            default_duration=data["default_duration"],
            default_breaths=data["default_breaths"],
            has_sides=data.get("has_sides", False),
        )


@dataclass
class FlowPose:
    """One scheduled occurrence of a pose inside a flow."""

    pose: Pose
    duration: int  # seconds or breaths, per the flow's timer mode
    side: Side | None = None

    @property
    def name(self) -> str:
        return self.pose.english_name

    def to_dict(self) -> dict[str, Any]:
        return {
            "pose": self.pose.to_dict(),
            "duration": self.duration,
            "side": self.side.value if self.side else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FlowPose":
        side = data.get("side")
        return cls(
            pose=Pose.from_dict(data["pose"]),
            duration=int(data["duration"]),
            side=Side(side) if side else None,
        )


@dataclass
class FlowOptions:
    """User preferences the generator turns into a flow."""

    duration: int  # total minutes
    focus_areas: list[FocusArea] = field(default_factory=lambda: [FocusArea.FULL_BODY])
    timer_mode: TimerMode = TimerMode.SECONDS
    breath_pace: BreathPace = BreathPace.NORMAL
    voice_enabled: bool = True
    difficulty: Difficulty = Difficulty.BEGINNER


def generate_flow_id() -> str:
    """Create a sortable, collision-resistant flow id."""
    return f"flow-{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}"


@dataclass
class Flow:
    """Ordered poses plus session-wide settings.

    Invariant: poses is non-empty.
    """

    poses: list[FlowPose]
    timer_mode: TimerMode = TimerMode.SECONDS
    breath_pace: BreathPace = BreathPace.NORMAL
    voice_enabled: bool = True
    duration: int = 0  # requested total minutes
    focus_areas: list[FocusArea] = field(default_factory=lambda: [FocusArea.FULL_BODY])
    difficulty: Difficulty = Difficulty.BEGINNER
    id: str = field(default_factory=generate_flow_id)
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __post_init__(self) -> None:
        if not self.poses:
            raise EmptyFlowError(self.id)

    def __len__(self) -> int:
        return len(self.poses)

    @property
    def unit_seconds(self) -> float:
        """Wall-clock seconds per timer unit."""
        if self.timer_mode == TimerMode.BREATHS:
            return float(self.breath_pace.seconds)
        return FLOW.SECOND_UNIT_S

    @property
    def last_index(self) -> int:
        return len(self.poses) - 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "duration": self.duration,
            "focus_areas": [area.value for area in self.focus_areas],
            "timer_mode": self.timer_mode.value,
            "breath_pace": self.breath_pace.value,
            "voice_enabled": self.voice_enabled,
            "difficulty": self.difficulty.value,
            "poses": [fp.to_dict() for fp in self.poses],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Flow":
        return cls(
            id=data["id"],
            created_at=data["created_at"],
            duration=data.get("duration", 0),
            focus_areas=[FocusArea(a) for a in data.get("focus_areas", ["full-body"])],
            timer_mode=TimerMode(data.get("timer_mode", "seconds")),
            breath_pace=BreathPace(data.get("breath_pace", "normal")),
            voice_enabled=data.get("voice_enabled", True),
            difficulty=Difficulty(data.get("difficulty", "beginner")),
            poses=[FlowPose.from_dict(fp) for fp in data["poses"]],
        )
