"""Flow Generator - builds an ordered pose sequence from user preferences.

Pure function over the static catalog: warmup, a focus-driven main phase and
a floor cooldown, chained through the transition table so that consecutive
poses flow into each other. Always ends in corpse pose.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from yogaflow.config.constants import FLOW
from yogaflow.flows.catalog import POSES, POSES_BY_ID, SEQUENCES, TRANSITIONS
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


@dataclass
class _Builder:
    """Accumulates flow poses for one generation run."""

    timer_mode: TimerMode
    breath_pace: BreathPace
    poses: list[FlowPose] = field(default_factory=list)
    used: set[str] = field(default_factory=set)

    @property
    def last_pose(self) -> Pose | None:
        return self.poses[-1].pose if self.poses else None

    def hold(self, pose: Pose) -> int:
        if self.timer_mode == TimerMode.BREATHS:
            return pose.default_breaths
        return pose.default_duration

    def seconds_for(self, pose: Pose) -> int:
        if self.timer_mode == TimerMode.BREATHS:
            return pose.default_breaths * self.breath_pace.seconds
        return pose.default_duration

    def add(self, pose: Pose) -> int:
        """Add a pose (both sides when asymmetric). Returns seconds added."""
        if pose.has_sides:
            self.poses.append(FlowPose(pose, self.hold(pose), Side.RIGHT))
            self.poses.append(FlowPose(pose, self.hold(pose), Side.LEFT))
            added = self.seconds_for(pose) * 2
        else:
            self.poses.append(FlowPose(pose, self.hold(pose)))
            added = self.seconds_for(pose)
        self.used.add(pose.id)
        return added


def filter_by_difficulty(poses: tuple[Pose, ...] | list[Pose], max_difficulty: Difficulty) -> list[Pose]:
    return [p for p in poses if p.difficulty.rank <= max_difficulty.rank]


def filter_by_focus(poses: list[Pose], focus_areas: list[FocusArea]) -> list[Pose]:
    if FocusArea.FULL_BODY in focus_areas:
        return list(poses)
    return [p for p in poses if p.targets(focus_areas)]


def next_valid_pose(
    current_id: str,
    available: list[Pose],
    used: set[str],
    focus_areas: list[FocusArea],
) -> Pose | None:
    """Pick the next unused pose reachable from current_id.

    Focus-matching poses are preferred; any valid transition is the fallback.
    """
    by_id = {p.id: p for p in available}
    candidates = [
        by_id[next_id]
        for next_id in TRANSITIONS.get(current_id, ())
        if next_id not in used and next_id in by_id
    ]
    for pose in candidates:
        if pose.targets(focus_areas):
            return pose
    return candidates[0] if candidates else None


def _build_phase(
    builder: _Builder,
    sequence: tuple[str, ...] | list[str],
    available: list[Pose],
    focus_areas: list[FocusArea],
    budget_s: int,
) -> None:
    """Walk a seed sequence, then keep chaining transitions until the budget is spent."""
    by_id = {p.id: p for p in available}
    start = len(builder.poses)
    spent = 0

    for pose_id in sequence:
        if spent >= budget_s:
            break
        if pose_id in builder.used or pose_id not in by_id:
            continue
        spent += builder.add(by_id[pose_id])

    if len(builder.poses) == start:
        return

    current_id = builder.poses[-1].pose.id
    while spent < budget_s:
        pose = next_valid_pose(current_id, available, builder.used, focus_areas)
        if pose is None:
            break
        spent += builder.add(pose)
        current_id = pose.id


def _main_sequence(focus_areas: list[FocusArea]) -> list[str]:
    if FocusArea.HIPS in focus_areas:
        return [*SEQUENCES["warrior_flow"], *SEQUENCES["hip_openers"]]
    if FocusArea.LOWER_BACK in focus_areas or FocusArea.UPPER_BACK in focus_areas:
        return [*SEQUENCES["back_care"], *SEQUENCES["warrior_flow"]]
    if FocusArea.SHOULDERS in focus_areas:
        return ["downward-dog", "plank", "cobra", "upward-dog", *SEQUENCES["warrior_flow"]]
    if FocusArea.HAMSTRINGS in focus_areas:
        return ["downward-dog", "forward-fold", "wide-leg-forward-fold", "triangle",
                "seated-forward-fold"]
    return [*SEQUENCES["sun_salutation_a"], *SEQUENCES["warrior_flow"]]


def generate_flow(options: FlowOptions) -> Flow:
    """Generate a flow for the given preferences.

    Args:
        options: Requested minutes, focus areas, timer settings, difficulty

    Returns:
        New Flow (not yet persisted)
    """
    focus_areas = options.focus_areas or [FocusArea.FULL_BODY]
    # Corpse is appended last, never chained
    available = [p for p in filter_by_difficulty(POSES, options.difficulty) if p.id != "corpse"]
    focused = filter_by_focus(available, focus_areas)

    total_s = options.duration * 60
    warmup_s = int(total_s * FLOW.WARMUP_FRACTION)
    main_s = int(total_s * FLOW.MAIN_FRACTION)
    cooldown_s = int(total_s * FLOW.COOLDOWN_FRACTION)

    builder = _Builder(options.timer_mode, options.breath_pace)

    # Warmup
    _build_phase(builder, SEQUENCES["gentle_warmup"], available, focus_areas, warmup_s)

    # Bridge from warmup into the main sequence
    last_id = builder.last_pose.id if builder.last_pose else "mountain"
    bridge = next_valid_pose(last_id, available, builder.used, focus_areas)
    if bridge is not None:
        builder.add(bridge)

    main_pool = focused if len(focused) >= FLOW.MIN_FOCUSED_POSES else available
    _build_phase(builder, _main_sequence(focus_areas), main_pool, focus_areas, main_s)

    # Come down to the floor before the cooldown
    last = builder.last_pose
    if last is not None and last.category == PoseCategory.STANDING and "childs-pose" not in builder.used:
        builder.add(POSES_BY_ID["childs-pose"])

    _build_phase(builder, SEQUENCES["cooldown"], available, focus_areas, cooldown_s)

    builder.add(POSES_BY_ID["corpse"])

    return Flow(
        poses=builder.poses,
        timer_mode=options.timer_mode,
        breath_pace=options.breath_pace,
        voice_enabled=options.voice_enabled,
        duration=options.duration,
        focus_areas=list(focus_areas),
        difficulty=options.difficulty,
    )


def generate_test_flow() -> Flow:
    """Short five-pose flow with two-second holds for quick manual checks."""
    pose_ids = ("mountain", "forward-fold", "downward-dog", "childs-pose", "corpse")
    return Flow(
        poses=[
            FlowPose(POSES_BY_ID[pose_id], FLOW.TEST_FLOW_POSE_SECONDS)
            for pose_id in pose_ids
        ],
        timer_mode=TimerMode.SECONDS,
        breath_pace=BreathPace.FAST,
        voice_enabled=False,
        duration=1,
        focus_areas=[FocusArea.FULL_BODY],
        difficulty=Difficulty.BEGINNER,
    )


def calculate_flow_duration(flow: Flow) -> tuple[int, int]:
    """Total hold time of a flow as (minutes, seconds)."""
    total_s = int(sum(fp.duration * flow.unit_seconds for fp in flow.poses))
    return total_s // 60, total_s % 60
