"""
PHYSIOTRACK Physio Service - Repetition State Machine

Stage transitions per exercise rule plus the minimum-interval debounce that
keeps a single movement from being counted twice.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .exercise_profiles import RepRule, Side, Stage

logger = logging.getLogger(__name__)


DEFAULT_MIN_REP_INTERVAL_MS = 700


def advance_stage(rule: Optional[RepRule], stage: Stage, angle: float) -> Tuple[Stage, bool]:
    """
    Apply one transition. Returns (new_stage, repetition_signalled).

    The completion check looks at the stage before this frame, so a single
    frame can never both arm and complete a repetition.
    """
    if rule is None:
        return stage, False

    new_stage = stage
    if angle > rule.arm_above:
        new_stage = rule.arm_stage
    if angle < rule.complete_below and stage == rule.arm_stage:
        return rule.complete_stage, True
    return new_stage, False


@dataclass
class RepState:
    """Mutable per-session repetition state."""
    stage: Stage = Stage.UNSET
    rep_count: int = 0
    total_reps_done: int = 0
    last_rep_timestamp: Optional[float] = None
    active_side: Optional[Side] = None

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "rep_count": self.rep_count,
            "total_reps_done": self.total_reps_done,
            "active_side": self.active_side.value if self.active_side else None,
        }


@dataclass(frozen=True)
class RepOutcome:
    """Result of feeding one angle into the machine."""
    stage: Stage
    rep_signalled: bool = False
    rep_honored: bool = False


class RepCounter:
    """
    Drives a RepState with an exercise rule.

    `now` is a timestamp in seconds from whatever clock the caller uses; the
    debounce only compares differences between successive timestamps.
    """

    def __init__(
        self,
        rule: Optional[RepRule],
        min_rep_interval_ms: int = DEFAULT_MIN_REP_INTERVAL_MS,
        state: Optional[RepState] = None
    ):
        self.rule = rule
        self.min_rep_interval = min_rep_interval_ms / 1000.0
        self.state = state or RepState()

    def update(self, angle: float, now: float) -> RepOutcome:
        """Advance the stage and count the repetition if the debounce allows it."""
        new_stage, signalled = advance_stage(self.rule, self.state.stage, angle)
        self.state.stage = new_stage

        if not signalled:
            return RepOutcome(stage=new_stage)

        last = self.state.last_rep_timestamp
        if last is not None and now - last < self.min_rep_interval:
            logger.debug(f"Repetition dropped by debounce ({(now - last) * 1000:.0f}ms since last)")
            return RepOutcome(stage=new_stage, rep_signalled=True)

        self.state.last_rep_timestamp = now
        self.state.rep_count += 1
        self.state.total_reps_done += 1
        logger.info(f"REP #{self.state.rep_count} at {angle:.1f}° (total {self.state.total_reps_done})")
        return RepOutcome(stage=new_stage, rep_signalled=True, rep_honored=True)

    def reset_set(self):
        """Clear per-set progress. The debounce timestamp survives."""
        self.state.rep_count = 0
        self.state.stage = Stage.UNSET

    def reset_all(self):
        """Full restart of counters, stage and side."""
        self.reset_set()
        self.state.total_reps_done = 0
        self.state.active_side = None
