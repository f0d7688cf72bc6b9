"""
PHYSIOTRACK Physio Service - Side Selector

Turns one pose into the single angle an exercise is tracked by.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from .exercise_profiles import AngleMode, ExerciseProfile, Side
from .geometry import Pose, angle_at, resolve_triple


@dataclass(frozen=True)
class AngleReading:
    """Angle for one accepted frame and the limb it was taken from."""
    angle: float
    side: Optional[Side] = None


def pick_side(left: Optional[float], right: Optional[float]) -> Optional[AngleReading]:
    """Pick the smaller (more flexed) angle. Ties go to the left side."""
    if left is None and right is None:
        return None
    if right is None:
        return AngleReading(left, Side.LEFT)
    if left is None:
        return AngleReading(right, Side.RIGHT)
    if left <= right:
        return AngleReading(left, Side.LEFT)
    return AngleReading(right, Side.RIGHT)


def _triple_angle(pose: Pose, joints, min_score: float) -> Optional[float]:
    """Angle for one joint triple; None when a joint is missing or the result is not finite."""
    points = resolve_triple(pose, joints, min_score)
    if points is None:
        return None
    angle = angle_at(*points)
    return angle if math.isfinite(angle) else None


def compute_angle(
    profile: ExerciseProfile,
    pose: Pose,
    min_score: float = 0.0
) -> Optional[AngleReading]:
    """
    Compute the tracked angle for a frame.

    Returns None when no triple of the profile can be resolved, in which case
    the frame must be discarded without touching any session state.
    """
    if profile.angle_mode == AngleMode.NONE or pose is None:
        return None

    if profile.angle_mode == AngleMode.MIN_SIDE:
        side_angles: Dict[Side, Optional[float]] = {Side.LEFT: None, Side.RIGHT: None}
        for side, joints in profile.triples:
            side_angles[side] = _triple_angle(pose, joints, min_score)
        return pick_side(side_angles[Side.LEFT], side_angles[Side.RIGHT])

    # AVERAGE
    angles = []
    for _, joints in profile.triples:
        angle = _triple_angle(pose, joints, min_score)
        if angle is not None:
            angles.append(angle)
    if not angles:
        return None
    return AngleReading(sum(angles) / len(angles))
