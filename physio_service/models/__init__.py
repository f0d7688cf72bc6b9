"""
PHYSIOTRACK Physio Service Models

Pose-to-repetition interpretation engine.
"""

from .geometry import (
    Keypoint,
    Pose,
    angle_at,
    resolve_keypoint,
)

from .exercise_profiles import (
    ExerciseProfile,
    RepRule,
    FormRule,
    AngleMode,
    Side,
    Stage,
    EXERCISE_PROFILES,
    get_profile,
    list_profiles,
)

from .side_selector import AngleReading, compute_angle, pick_side
from .form_classifier import classify_form
from .rep_counter import RepCounter, RepState, RepOutcome, advance_stage
from .overlay import build_overlay

from .exercise_session import (
    ExerciseSession,
    ExerciseSessionHandler,
    SessionState,
    SessionPhase,
    FrameUpdate,
    ReportMetrics,
    build_report_metrics,
    get_session_handler,
)

__all__ = [
    # Geometry
    "Keypoint",
    "Pose",
    "angle_at",
    "resolve_keypoint",
    # Profiles
    "ExerciseProfile",
    "RepRule",
    "FormRule",
    "AngleMode",
    "Side",
    "Stage",
    "EXERCISE_PROFILES",
    "get_profile",
    "list_profiles",
    # Per-frame pipeline
    "AngleReading",
    "compute_angle",
    "pick_side",
    "classify_form",
    "RepCounter",
    "RepState",
    "RepOutcome",
    "advance_stage",
    "build_overlay",
    # Exercise Session
    "ExerciseSession",
    "ExerciseSessionHandler",
    "SessionState",
    "SessionPhase",
    "FrameUpdate",
    "ReportMetrics",
    "build_report_metrics",
    "get_session_handler",
]
