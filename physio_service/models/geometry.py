"""
PHYSIOTRACK Physio Service - Pose Geometry

Keypoint/pose records as returned by the pose-estimation service, joint lookup
and the joint angle helper shared by every exercise profile.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np


# Upstream services label keypoints under any of these fields
KEYPOINT_NAME_FIELDS = ("name", "part", "bodyPart")


@dataclass(frozen=True)
class Keypoint:
    """A named landmark with normalized 2D position and optional confidence."""
    name: str
    x: float
    y: float
    score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Keypoint"]:
        """Build a keypoint from a service record, or None if it is unusable."""
        if not isinstance(data, dict):
            return None

        name = ""
        for key in KEYPOINT_NAME_FIELDS:
            if data.get(key):
                name = str(data[key])
                break

        try:
            x = float(data["x"])
            y = float(data["y"])
        except (KeyError, TypeError, ValueError):
            return None
        if not (np.isfinite(x) and np.isfinite(y)):
            return None

        score = data.get("score")
        try:
            score = float(score) if score is not None else None
        except (TypeError, ValueError):
            score = None
        if score is not None and not np.isfinite(score):
            score = 0.0

        return cls(name=name, x=x, y=y, score=score)

    def is_confident(self, min_score: float) -> bool:
        """Keypoints without a score are trusted."""
        return self.score is None or self.score >= min_score

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "x": self.x, "y": self.y, "score": self.score}


@dataclass
class Pose:
    """One frame's worth of keypoints."""
    keypoints: List[Keypoint] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Pose":
        """Parse a `{"keypoints": [...]}` record, skipping malformed entries."""
        if not isinstance(data, dict):
            return cls()
        raw = data.get("keypoints") or []
        keypoints = []
        for item in raw:
            kp = Keypoint.from_dict(item)
            if kp is not None:
                keypoints.append(kp)
        return cls(keypoints=keypoints)

    def to_dict(self) -> Dict[str, Any]:
        return {"keypoints": [kp.to_dict() for kp in self.keypoints]}


def angle_at(a: Keypoint, b: Keypoint, c: Keypoint) -> float:
    """
    Unsigned angle at vertex b between rays b->a and b->c.

    Uses the difference of the two rays' polar angles and reflects anything
    above 180 so the result is always in [0, 180] degrees.
    """
    radians = np.arctan2(c.y - b.y, c.x - b.x) - np.arctan2(a.y - b.y, a.x - b.x)
    angle = abs(float(np.degrees(radians)))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def resolve_keypoint(pose: Optional[Pose], joint_name: str) -> Optional[Keypoint]:
    """Case-insensitive joint lookup. Returns None when the joint is absent."""
    if pose is None or not pose.keypoints:
        return None
    target = joint_name.lower()
    for kp in pose.keypoints:
        if kp.name.lower() == target:
            return kp
    return None


def resolve_triple(
    pose: Pose,
    joints: Sequence[str],
    min_score: float = 0.0
) -> Optional[List[Keypoint]]:
    """Resolve every joint of a triple, or None if any is missing or unconfident."""
    points = []
    for joint in joints:
        kp = resolve_keypoint(pose, joint)
        if kp is None or not kp.is_confident(min_score):
            return None
        points.append(kp)
    return points
