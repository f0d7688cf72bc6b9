"""
PHYSIOTRACK Physio Service - Exercise Profile Registry

Static per-exercise configuration. Every exercise is described by data only:
the joint triples used for its angle, how the two sides are combined, the
repetition rule and the form-label rules. The frame processing pipeline is
shared by all exercises and never branches on the exercise identifier.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Side(str, Enum):
    """Body side of a bilateral joint triple."""
    LEFT = "left"
    RIGHT = "right"


class AngleMode(str, Enum):
    """How per-side angles are combined into the frame angle."""
    MIN_SIDE = "min_side"      # pick the more flexed limb, ties go left
    AVERAGE = "average"        # mean of whatever triples are computable
    NONE = "none"              # no angle is computed


class Stage(str, Enum):
    """Repetition stage."""
    UNSET = "-"
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class RepRule:
    """
    Two-threshold repetition rule.

    Any angle above `arm_above` moves the machine into `arm_stage`. An angle
    below `complete_below` while in `arm_stage` moves it to `complete_stage`
    and signals a completed repetition.
    """
    family: str
    arm_above: float
    arm_stage: Stage
    complete_below: float
    complete_stage: Stage


# Curl family: extend past 150, flex under 50
CURL_RULE = RepRule("curl", arm_above=150.0, arm_stage=Stage.DOWN,
                    complete_below=50.0, complete_stage=Stage.UP)

# Squat family: straighten past 150, bend under 98
SQUAT_RULE = RepRule("squat", arm_above=150.0, arm_stage=Stage.UP,
                     complete_below=98.0, complete_stage=Stage.DOWN)

SIDE_BEND_RULE = RepRule("side_bend", arm_above=40.0, arm_stage=Stage.UP,
                         complete_below=25.0, complete_stage=Stage.DOWN)


@dataclass(frozen=True)
class FormRule:
    """Label applied when `low < angle < high` (either bound optional)."""
    label: str
    low: Optional[float] = None
    high: Optional[float] = None

    def matches(self, angle: float) -> bool:
        if self.low is not None and not angle > self.low:
            return False
        if self.high is not None and not angle < self.high:
            return False
        return True


@dataclass(frozen=True)
class ExerciseProfile:
    """Immutable description of one exercise."""
    exercise_id: str
    name: str
    angle_mode: AngleMode
    triples: Tuple[Tuple[Optional[Side], Tuple[str, str, str]], ...] = ()
    rep_rule: Optional[RepRule] = None
    form_rules: Tuple[FormRule, ...] = ()
    fallback_label: str = "Good"
    joints: Tuple[str, ...] = ()
    segments: Tuple[Tuple[str, str], ...] = ()

    @property
    def counts_reps(self) -> bool:
        return self.rep_rule is not None

    @property
    def is_bilateral(self) -> bool:
        return self.angle_mode == AngleMode.MIN_SIDE

    def to_dict(self) -> Dict:
        return {
            "exercise_id": self.exercise_id,
            "name": self.name,
            "counts_reps": self.counts_reps,
            "bilateral": self.is_bilateral,
            "rep_family": self.rep_rule.family if self.rep_rule else None,
            "joints": list(self.joints),
        }


def _limb_triples(proximal: str, middle: str, distal: str):
    return (
        (Side.LEFT, (f"left_{proximal}", f"left_{middle}", f"left_{distal}")),
        (Side.RIGHT, (f"right_{proximal}", f"right_{middle}", f"right_{distal}")),
    )


def _limb_joints(proximal: str, middle: str, distal: str) -> Tuple[str, ...]:
    return tuple(f"{side}_{j}" for side in ("left", "right") for j in (proximal, middle, distal))


def _limb_segments(proximal: str, middle: str, distal: str):
    segments = []
    for side in ("left", "right"):
        segments.append((f"{side}_{proximal}", f"{side}_{middle}"))
        segments.append((f"{side}_{middle}", f"{side}_{distal}"))
    return tuple(segments)


ARM = ("shoulder", "elbow", "wrist")
LEG = ("hip", "knee", "ankle")


EXERCISE_PROFILES: Dict[str, ExerciseProfile] = {
    "squat": ExerciseProfile(
        exercise_id="squat",
        name="Squats",
        angle_mode=AngleMode.MIN_SIDE,
        triples=_limb_triples(*LEG),
        rep_rule=SQUAT_RULE,
        form_rules=(
            FormRule("Nice deep squat", high=95),
            FormRule("Standing tall", low=160),
        ),
        fallback_label="Try going a bit lower",
        joints=_limb_joints(*LEG),
        segments=_limb_segments(*LEG),
    ),
    "bicep_curl": ExerciseProfile(
        exercise_id="bicep_curl",
        name="Bicep Curls",
        angle_mode=AngleMode.MIN_SIDE,
        triples=_limb_triples(*ARM),
        rep_rule=CURL_RULE,
        form_rules=(
            FormRule("Great contraction", high=70),
            FormRule("Full extension", low=145),
        ),
        fallback_label="Complete your motion fully",
        joints=_limb_joints(*ARM),
        segments=_limb_segments(*ARM),
    ),
    "shoulder_abduction": ExerciseProfile(
        exercise_id="shoulder_abduction",
        name="Shoulder Abduction",
        angle_mode=AngleMode.MIN_SIDE,
        triples=_limb_triples(*ARM),
        rep_rule=CURL_RULE,
        form_rules=(FormRule("Good arm raise", low=120),),
        fallback_label="Lift higher for full range",
        joints=_limb_joints(*ARM),
        segments=_limb_segments(*ARM),
    ),
    "knee_extension": ExerciseProfile(
        exercise_id="knee_extension",
        name="Knee Extension",
        angle_mode=AngleMode.MIN_SIDE,
        triples=_limb_triples(*LEG),
        rep_rule=SQUAT_RULE,
        form_rules=(FormRule("Full knee extension", low=160),),
        fallback_label="Straighten knee more",
        joints=_limb_joints(*LEG),
        segments=_limb_segments(*LEG),
    ),
    "leg_raise": ExerciseProfile(
        exercise_id="leg_raise",
        name="Leg Raises",
        angle_mode=AngleMode.MIN_SIDE,
        triples=_limb_triples(*LEG),
        rep_rule=SQUAT_RULE,
        form_rules=(FormRule("Leg raised high enough", low=140),),
        fallback_label="Lift leg higher",
        joints=_limb_joints(*LEG),
        segments=_limb_segments(*LEG),
    ),
    "side_bend": ExerciseProfile(
        exercise_id="side_bend",
        name="Side Bends",
        angle_mode=AngleMode.AVERAGE,
        triples=(
            (None, ("left_shoulder", "left_hip", "right_hip")),
            (None, ("right_shoulder", "right_hip", "left_hip")),
        ),
        rep_rule=SIDE_BEND_RULE,
        form_rules=(FormRule("Nice side bend", low=15, high=35),),
        fallback_label="Bend slightly more to side",
        joints=("left_shoulder", "right_shoulder", "left_hip", "right_hip"),
        segments=(("left_shoulder", "left_hip"), ("right_shoulder", "right_hip")),
    ),
}


# Exercises without a registered profile: no angle, no rep counting
DEFAULT_FORM_RULES = (
    FormRule("Check form", low=170),
    FormRule("Check form", high=30),
)
DEFAULT_FALLBACK_LABEL = "Good"


def get_profile(exercise_id: str) -> ExerciseProfile:
    """Look up a profile; unknown identifiers get a display-only profile."""
    profile = EXERCISE_PROFILES.get(exercise_id)
    if profile is not None:
        return profile
    return ExerciseProfile(
        exercise_id=exercise_id,
        name=exercise_id.replace("_", " ").title(),
        angle_mode=AngleMode.NONE,
        form_rules=DEFAULT_FORM_RULES,
        fallback_label=DEFAULT_FALLBACK_LABEL,
    )


def list_profiles() -> List[ExerciseProfile]:
    return list(EXERCISE_PROFILES.values())
