"""Static pose catalog and transition-compatibility table.

Loaded once at import; every structure here is treated as read-only.
"""

from yogaflow.exceptions import PoseNotFoundError
from yogaflow.flows.models import Difficulty, FocusArea, Pose, PoseCategory

_B = Difficulty.BEGINNER
_I = Difficulty.INTERMEDIATE
_E = Difficulty.EXPERT

_LB = FocusArea.LOWER_BACK
_UB = FocusArea.UPPER_BACK
_SH = FocusArea.SHOULDERS
_HI = FocusArea.HIPS
_HA = FocusArea.HAMSTRINGS
_FB = FocusArea.FULL_BODY


def _pose(
    pose_id: str,
    english: str,
    sanskrit: str,
    description: str,
    difficulty: Difficulty,
    focus: tuple[FocusArea, ...],
    category: PoseCategory,
    duration: int,
    breaths: int,
    has_sides: bool = False,
) -> Pose:
    return Pose(
        id=pose_id,
        english_name=english,
        sanskrit_name=sanskrit,
        description=description,
        difficulty=difficulty,
        focus_areas=focus,
        category=category,
        default_duration=duration,
        default_breaths=breaths,
        has_sides=has_sides,
    )


POSES: tuple[Pose, ...] = (
    # Standing
    _pose("mountain", "Mountain Pose", "Tadasana",
          "Stand tall with feet together, arms by your sides, crown reaching up.",
          _B, (_FB,), PoseCategory.WARMUP, 30, 5),
    _pose("standing-side-stretch", "Standing Side Stretch", "Parsva Tadasana",
          "Reach both arms overhead and lean gently to one side, then the other.",
          _B, (_SH, _UB), PoseCategory.WARMUP, 30, 5),
    _pose("forward-fold", "Standing Forward Fold", "Uttanasana",
          "Hinge at the hips and let your upper body hang, knees soft.",
          _B, (_HA, _LB), PoseCategory.STANDING, 45, 6),
    _pose("downward-dog", "Downward-Facing Dog", "Adho Mukha Svanasana",
          "Hands and feet grounded, hips lifted, body in an inverted V.",
          _B, (_FB, _HA, _SH), PoseCategory.STANDING, 45, 6),
    _pose("plank", "Plank", "Phalakasana",
          "Shoulders over wrists, body in one long line from head to heels.",
          _I, (_SH, _FB), PoseCategory.STANDING, 30, 4),
    _pose("low-lunge", "Low Lunge", "Anjaneyasana",
          "Back knee down, front knee over ankle, hips sinking forward.",
          _B, (_HI,), PoseCategory.STANDING, 45, 6, has_sides=True),
    _pose("warrior-1", "Warrior I", "Virabhadrasana I",
          "Front knee bent, back heel grounded, arms reaching overhead.",
          _B, (_HI, _SH), PoseCategory.STANDING, 45, 6, has_sides=True),
    _pose("warrior-2", "Warrior II", "Virabhadrasana II",
          "Front knee bent, arms extended parallel to the floor, gaze forward.",
          _B, (_HI, _FB), PoseCategory.STANDING, 45, 6, has_sides=True),
    _pose("triangle", "Triangle Pose", "Trikonasana",
          "Straight legs wide apart, reach forward then down, top arm to the sky.",
          _I, (_HA, _HI), PoseCategory.STANDING, 45, 6, has_sides=True),
    _pose("wide-leg-forward-fold", "Wide-Legged Forward Fold", "Prasarita Padottanasana",
          "Feet wide, fold forward from the hips, hands to the floor.",
          _I, (_HA, _LB), PoseCategory.STANDING, 45, 6),
    _pose("camel", "Camel Pose", "Ustrasana",
          "Kneel upright, hands to lower back or heels, open the chest upward.",
          _E, (_UB, _SH), PoseCategory.STANDING, 30, 4),
    # Floor
    _pose("cat-cow", "Cat-Cow", "Marjaryasana-Bitilasana",
          "On hands and knees, alternate rounding and arching the spine with the breath.",
          _B, (_LB, _UB), PoseCategory.WARMUP, 45, 6),
    _pose("thread-needle", "Thread the Needle", "Parsva Balasana",
          "From hands and knees, slide one arm under the other and rest the shoulder down.",
          _B, (_UB, _SH), PoseCategory.WARMUP, 45, 6, has_sides=True),
    _pose("cobra", "Cobra", "Bhujangasana",
          "Lying on the belly, press gently into the hands and lift the chest.",
          _B, (_LB, _UB), PoseCategory.STANDING, 30, 5),
    _pose("upward-dog", "Upward-Facing Dog", "Urdhva Mukha Svanasana",
          "Arms straight, thighs lifted, chest open and shoulders away from the ears.",
          _I, (_UB, _SH), PoseCategory.STANDING, 30, 4),
    _pose("sphinx", "Sphinx Pose", "Salamba Bhujangasana",
          "On the belly, forearms down, lift the chest softly.",
          _B, (_LB,), PoseCategory.STANDING, 45, 6),
    # Seated
    _pose("pigeon", "Pigeon Pose", "Eka Pada Rajakapotasana",
          "Front shin across the mat, back leg extended, hips square.",
          _I, (_HI,), PoseCategory.SEATED, 60, 8, has_sides=True),
    _pose("half-pigeon", "Half Pigeon Fold", "Ardha Kapotasana",
          "From pigeon, fold forward over the front shin and rest.",
          _I, (_HI, _LB), PoseCategory.SEATED, 60, 8, has_sides=True),
    _pose("seated-forward-fold", "Seated Forward Fold", "Paschimottanasana",
          "Legs extended, fold forward from the hips toward the feet.",
          _B, (_HA, _LB), PoseCategory.SEATED, 60, 8),
    _pose("seated-twist", "Seated Twist", "Ardha Matsyendrasana",
          "Sit tall, cross one foot over the knee and twist toward it.",
          _B, (_LB, _UB), PoseCategory.SEATED, 45, 6, has_sides=True),
    _pose("boat", "Boat Pose", "Navasana",
          "Balance on the sit bones, legs lifted, arms reaching forward.",
          _E, (_FB,), PoseCategory.SEATED, 30, 4),
    # Supine
    _pose("bridge", "Bridge Pose", "Setu Bandha Sarvangasana",
          "Lying on the back, feet planted, lift the hips toward the sky.",
          _B, (_LB, _HI), PoseCategory.SUPINE, 45, 6),
    _pose("supine-twist", "Supine Twist", "Supta Matsyendrasana",
          "On the back, drop both knees to one side, arms open wide.",
          _B, (_LB,), PoseCategory.SUPINE, 60, 8, has_sides=True),
    _pose("happy-baby", "Happy Baby", "Ananda Balasana",
          "On the back, hold the outer feet and draw the knees toward the armpits.",
          _B, (_HI, _LB), PoseCategory.SUPINE, 45, 6),
    _pose("reclined-butterfly", "Reclined Butterfly", "Supta Baddha Konasana",
          "On the back, soles of the feet together, knees falling open.",
          _B, (_HI,), PoseCategory.SUPINE, 60, 8),
    _pose("legs-up-wall", "Legs Up the Wall", "Viparita Karani",
          "Lie on the back with the legs resting vertically against a wall.",
          _B, (_LB, _HA), PoseCategory.COOLDOWN, 90, 10),
    # Cooldown
    _pose("childs-pose", "Child's Pose", "Balasana",
          "Knees wide, big toes touching, fold forward and rest the forehead down.",
          _B, (_LB, _HI), PoseCategory.COOLDOWN, 45, 6),
    _pose("corpse", "Corpse Pose", "Savasana",
          "Lie flat on the back, let the whole body soften and rest.",
          _B, (_FB,), PoseCategory.COOLDOWN, 120, 12),
)

POSES_BY_ID: dict[str, Pose] = {pose.id: pose for pose in POSES}

# Poses that flow naturally into each other
TRANSITIONS: dict[str, tuple[str, ...]] = {
    # Standing
    "mountain": ("forward-fold", "standing-side-stretch", "warrior-1", "warrior-2"),
    "forward-fold": ("mountain", "downward-dog", "low-lunge"),
    "downward-dog": ("plank", "low-lunge", "warrior-1", "pigeon", "childs-pose"),
    "plank": ("downward-dog", "cobra", "upward-dog", "childs-pose"),
    "low-lunge": ("downward-dog", "warrior-1", "warrior-2", "pigeon"),
    "warrior-1": ("warrior-2", "downward-dog", "low-lunge"),
    "warrior-2": ("triangle", "warrior-1", "wide-leg-forward-fold"),
    "triangle": ("warrior-2", "wide-leg-forward-fold", "forward-fold"),
    "wide-leg-forward-fold": ("forward-fold", "mountain", "seated-forward-fold"),
    "standing-side-stretch": ("mountain", "forward-fold"),
    "camel": ("childs-pose", "downward-dog"),
    # Floor
    "cobra": ("downward-dog", "childs-pose", "sphinx"),
    "upward-dog": ("downward-dog", "childs-pose"),
    "sphinx": ("cobra", "childs-pose", "downward-dog"),
    "cat-cow": ("downward-dog", "childs-pose", "thread-needle"),
    "thread-needle": ("cat-cow", "childs-pose", "downward-dog"),
    # Seated
    "pigeon": ("half-pigeon", "downward-dog", "seated-forward-fold"),
    "half-pigeon": ("downward-dog", "seated-forward-fold", "supine-twist"),
    "seated-forward-fold": ("seated-twist", "boat", "bridge"),
    "seated-twist": ("seated-forward-fold", "supine-twist", "bridge"),
    "boat": ("seated-forward-fold", "bridge"),
    # Supine
    "bridge": ("supine-twist", "happy-baby", "reclined-butterfly"),
    "supine-twist": ("happy-baby", "reclined-butterfly", "corpse"),
    "happy-baby": ("supine-twist", "reclined-butterfly", "corpse"),
    "reclined-butterfly": ("happy-baby", "corpse", "legs-up-wall"),
    "legs-up-wall": ("corpse",),
    # Cooldown
    "childs-pose": ("cat-cow", "downward-dog", "seated-forward-fold"),
    "corpse": (),
}

# Mini-flows that work well together
SEQUENCES: dict[str, tuple[str, ...]] = {
    "sun_salutation_a": ("mountain", "forward-fold", "plank", "cobra", "downward-dog"),
    "warrior_flow": ("downward-dog", "low-lunge", "warrior-1", "warrior-2", "triangle"),
    "hip_openers": ("low-lunge", "pigeon", "half-pigeon"),
    "back_care": ("cat-cow", "thread-needle", "sphinx", "cobra"),
    "cooldown": ("seated-forward-fold", "seated-twist", "bridge", "supine-twist", "happy-baby"),
    "gentle_warmup": ("mountain", "standing-side-stretch", "forward-fold", "cat-cow"),
}


def get_pose(pose_id: str) -> Pose:
    """Look up a catalog pose.

    Raises:
        PoseNotFoundError: If the id is unknown
    """
    try:
        return POSES_BY_ID[pose_id]
    except KeyError:
        raise PoseNotFoundError(pose_id) from None
