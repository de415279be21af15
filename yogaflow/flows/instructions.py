"""Narration agent instructions.

Builds the system prompt that teaches the realtime agent the cue protocol.
The prompt is sent once, at session bootstrap.
"""

from yogaflow.config.constants import FLOW
from yogaflow.flows.models import Flow, FlowPose, Side, TimerMode

SIDE_LABELS: dict[Side, str] = {
    Side.LEFT: "left side",
    Side.RIGHT: "right side",
    Side.BOTH: "both sides",
}


def side_suffix(side: Side | None) -> str:
    """Render a side as ' (left side)' etc, or '' for symmetric poses."""
    if side is None:
        return ""
    return f" ({SIDE_LABELS[side]})"


def _pose_line(index: int, flow_pose: FlowPose, unit: str) -> str:
    return (
        f"  {index}. {flow_pose.name}{side_suffix(flow_pose.side)}"
        f" - {flow_pose.duration} {unit}: {flow_pose.pose.description}"
    )


def build_instructions(flow: Flow) -> str:
    """System prompt for the narration agent."""
    unit = "breaths" if flow.timer_mode == TimerMode.BREATHS else "seconds"
    pose_list = "\n".join(
        _pose_line(i, fp, unit) for i, fp in enumerate(flow.poses, start=1)
    )
    tool = FLOW.CONTINUATION_TOOL_NAME

    return f"""You are a calm yoga instructor guiding a complete session by voice.
The app keeps time. You never decide when to move on.

POSES IN ORDER ({len(flow)} poses):
{pose_list}

You will receive short cues. React to each one exactly as described:
- [START] First pose: <name> -> briefly welcome the student and introduce the pose.
  Call {tool}() as soon as you start speaking.
- [POSE: <name>] -> name the pose and give one brief instruction.
  Call {tool}() as soon as you start speaking.
- [NEXT: <name>] -> one transition phrase, then introduce the new pose.
  Call {tool}() as soon as you start speaking.
- [HALFWAY] -> one short sentence of encouragement. Do not call {tool}().
- [LAST_BREATH] -> one short cue for the final breath. Do not call {tool}().
- [COMPLETE] -> a short closing remark and thank the student. Do not call {tool}().

IMPORTANT:
- Keep every response short and calm.
- Never describe a pose other than the one in the latest cue.
- If a response is interrupted, do not resume it."""
