"""
PHYSIOTRACK Physio Service - Skeleton Overlay

Chooses which tracked joints and segments a client should draw over the
camera preview for the current frame.
"""

from typing import Any, Dict, List, Optional

from .exercise_profiles import ExerciseProfile, Side
from .geometry import Keypoint, Pose, resolve_keypoint


def mirror_x(x: float, mirror: bool = True) -> float:
    """Mirror a normalized x coordinate for a front (selfie) camera."""
    return 1 - x if mirror else x


def _drawable(kp: Optional[Keypoint], min_score: float) -> bool:
    return kp is not None and (kp.score or 0) >= min_score


def build_overlay(
    profile: ExerciseProfile,
    pose: Optional[Pose],
    active_side: Optional[Side],
    mirror: bool = False,
    min_score: float = 0.4
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Joints and segments to draw for a pose.

    Bilateral exercises with a known active side only show that side.
    Keypoints below `min_score` (or without a score) are not drawn.
    """
    joints = list(profile.joints)
    segments = list(profile.segments)

    if active_side is not None and profile.is_bilateral:
        prefix = f"{active_side.value}_"
        joints = [j for j in joints if j.startswith(prefix)]
        segments = [(a, b) for a, b in segments if a.startswith(prefix) and b.startswith(prefix)]

    points = []
    lines = []
    if pose is None:
        return {"joints": points, "segments": lines}

    for joint in joints:
        kp = resolve_keypoint(pose, joint)
        if not _drawable(kp, min_score):
            continue
        points.append({"name": joint, "x": mirror_x(kp.x, mirror), "y": kp.y})

    for a, b in segments:
        kp_a = resolve_keypoint(pose, a)
        kp_b = resolve_keypoint(pose, b)
        if not (_drawable(kp_a, min_score) and _drawable(kp_b, min_score)):
            continue
        lines.append({
            "from": a,
            "to": b,
            "x1": mirror_x(kp_a.x, mirror),
            "y1": kp_a.y,
            "x2": mirror_x(kp_b.x, mirror),
            "y2": kp_b.y,
        })

    return {"joints": points, "segments": lines}
