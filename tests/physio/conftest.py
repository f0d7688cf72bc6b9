"""
Shared pose builders for the physio engine tests.
"""

import math

import pytest

from physio_service.models import Keypoint, Pose
from physio_service.models.exercise_profiles import LEG


def limb_keypoints(side: str, joints, angle: float, score: float = 0.9, origin_x: float = 0.5):
    """Three keypoints whose angle at the middle joint is `angle` degrees."""
    proximal, middle, distal = joints
    bx, by = origin_x, 0.5
    theta = math.radians(angle)
    return [
        Keypoint(f"{side}_{proximal}", bx, by - 0.2, score),
        Keypoint(f"{side}_{middle}", bx, by, score),
        Keypoint(f"{side}_{distal}", bx + 0.2 * math.sin(theta), by - 0.2 * math.cos(theta), score),
    ]


def build_limb_pose(left=None, right=None, joints=LEG, score=0.9) -> Pose:
    keypoints = []
    if left is not None:
        keypoints += limb_keypoints("left", joints, left, score, origin_x=0.35)
    if right is not None:
        keypoints += limb_keypoints("right", joints, right, score, origin_x=0.65)
    return Pose(keypoints=keypoints)


@pytest.fixture
def limb_pose():
    return build_limb_pose


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
