"""Flow Constants - Protocol and timing contracts.

Fixed values shared by the timer, the cue protocol and the narration
collaborators. Tunables that operators may change live in settings.

All timing values in seconds unless otherwise noted.
"""

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class FlowConstants:
    """Immutable protocol and timing constants."""

    # Breath pace: one full breath (inhale + exhale)
    BREATH_SLOW_S: Final[int] = 8  # 4s in, 4s out
    BREATH_NORMAL_S: Final[int] = 6  # 3s in, 3s out
    BREATH_FAST_S: Final[int] = 4  # 2s in, 2s out

    # Timer
    SECOND_UNIT_S: Final[float] = 1.0
    PROGRESS_SAMPLE_MS: Final[int] = 50  # Smooth progress sampling in breath mode

    # Cue protocol
    CONTINUATION_TOOL_NAME: Final[str] = "ready_to_continue"
    DATA_CHANNEL_LABEL: Final[str] = "oai-events"
    CUE_SEQ_METADATA_KEY: Final[str] = "cue_seq"

    # Barrier / connection bounds
    BARRIER_TIMEOUT_S: Final[float] = 10.0
    CONNECT_TIMEOUT_S: Final[float] = 15.0

    # Narration cache
    NARRATION_MIN_BYTES: Final[int] = 1000  # Smaller blobs are treated as corrupt

    # Flow generation time split
    WARMUP_FRACTION: Final[float] = 0.20
    MAIN_FRACTION: Final[float] = 0.55
    COOLDOWN_FRACTION: Final[float] = 0.25
    MIN_FOCUSED_POSES: Final[int] = 4  # Below this the main phase uses all poses

    # Test flow
    TEST_FLOW_POSE_SECONDS: Final[int] = 2


# Singleton instance for import convenience
FLOW = FlowConstants()
