"""
PHYSIOTRACK Physio Service - Exercise Session Handler

Owns one live exercise session: set/rep targets, elapsed time, lifecycle
(running -> set completed -> session ended) and the per-frame pipeline that
turns a pose into an angle, a form label and a repetition count.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.config import settings

from .exercise_profiles import ExerciseProfile, Side, Stage, get_profile
from .form_classifier import classify_profile
from .geometry import Pose
from .overlay import build_overlay
from .rep_counter import RepCounter, RepState
from .side_selector import compute_angle

logger = logging.getLogger(__name__)


DEFAULT_FORM_LABEL = "Good"


class SessionPhase(Enum):
    """Derived lifecycle phase."""
    RUNNING = "running"
    SET_COMPLETED = "set_completed"
    ENDED = "ended"


@dataclass
class SessionState:
    """Set progress and lifecycle flags for one session."""
    total_sets: int = 1
    reps_target: int = 10
    current_set: int = 1
    elapsed_seconds: int = 0
    running: bool = True
    set_completed: bool = False
    session_ended: bool = False

    @property
    def phase(self) -> SessionPhase:
        if self.session_ended:
            return SessionPhase.ENDED
        if self.set_completed:
            return SessionPhase.SET_COMPLETED
        return SessionPhase.RUNNING

    @property
    def accepting_frames(self) -> bool:
        return self.running and not self.set_completed and not self.session_ended

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "current_set": self.current_set,
            "total_sets": self.total_sets,
            "reps_target": self.reps_target,
            "elapsed_seconds": self.elapsed_seconds,
            "running": self.running,
            "set_completed": self.set_completed,
            "session_ended": self.session_ended,
        }


@dataclass(frozen=True)
class FrameUpdate:
    """What one pose sample did to the session."""
    accepted: bool
    angle: Optional[float] = None
    side: Optional[Side] = None
    form_label: Optional[str] = None
    stage: Optional[Stage] = None
    rep_honored: bool = False
    rep_count: int = 0
    set_completed: bool = False
    session_ended: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "angle": round(self.angle, 1) if self.angle is not None else None,
            "side": self.side.value if self.side else None,
            "form_label": self.form_label,
            "stage": self.stage.value if self.stage else None,
            "rep_honored": self.rep_honored,
            "rep_count": self.rep_count,
            "set_completed": self.set_completed,
            "session_ended": self.session_ended,
        }


@dataclass
class ReportMetrics:
    """Aggregates sent to the report-generation service."""
    patient_name: str
    patient_id: str
    exercise: str
    exercise_key: str
    reps: int
    assigned_reps: int
    sets: int
    duration: float
    avg_time: float
    form_score: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "patient_name": self.patient_name,
            "patient_id": self.patient_id,
            "exercise": self.exercise,
            "exercise_key": self.exercise_key,
            "reps": self.reps,
            "assigned_reps": self.assigned_reps,
            "sets": self.sets,
            "duration": self.duration,
            "avg_time": self.avg_time,
            "form_score": self.form_score,
        }


def build_report_metrics(
    exercise_key: str,
    exercise_name: Optional[str],
    total_reps: int,
    reps_target: int,
    total_sets: int,
    duration: float,
    form_score: float,
    patient_name: Optional[str] = None,
    patient_id: Optional[str] = None
) -> ReportMetrics:
    """Derive report aggregates. Average time per rep is 0 when no reps were done."""
    avg_time = duration / total_reps if total_reps > 0 else 0
    return ReportMetrics(
        patient_name=patient_name or settings.DEFAULT_PATIENT_NAME,
        patient_id=patient_id or settings.DEFAULT_PATIENT_ID,
        exercise=exercise_name or exercise_key,
        exercise_key=exercise_key,
        reps=total_reps,
        assigned_reps=reps_target * total_sets,
        sets=total_sets,
        duration=duration,
        avg_time=avg_time,
        form_score=form_score,
    )


class ExerciseSession:
    """
    Live session for one exercise.

    All mutation happens through `process_pose`, `tick_elapsed` and the three
    lifecycle triggers; nothing here knows about timers, HTTP or rendering.
    """

    def __init__(
        self,
        exercise_id: str,
        reps_target: int = 10,
        total_sets: int = 1,
        patient_name: Optional[str] = None,
        patient_id: Optional[str] = None,
        session_id: Optional[str] = None,
        min_rep_interval_ms: Optional[int] = None,
        min_keypoint_score: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if reps_target < 1:
            raise ValueError("reps_target must be at least 1")
        if total_sets < 1:
            raise ValueError("total_sets must be at least 1")

        self.session_id = session_id or str(uuid.uuid4())[:8]
        self.profile: ExerciseProfile = get_profile(exercise_id)
        self.patient_name = patient_name
        self.patient_id = patient_id
        self.clock = clock
        self.min_keypoint_score = (
            settings.MIN_KEYPOINT_SCORE if min_keypoint_score is None else min_keypoint_score
        )

        self.state = SessionState(total_sets=total_sets, reps_target=reps_target)
        self.counter = RepCounter(
            self.profile.rep_rule,
            min_rep_interval_ms=(
                settings.MIN_REP_INTERVAL_MS if min_rep_interval_ms is None else min_rep_interval_ms
            ),
        )

        # Display state
        self.angle: float = 0.0
        self.form_label: str = DEFAULT_FORM_LABEL
        self.last_pose: Optional[Pose] = None
        self.report_url: Optional[str] = None

        if not self.profile.counts_reps:
            logger.warning(f"Exercise '{exercise_id}' has no repetition rule; tracking form only")
        logger.info(
            f"Session {self.session_id} created: {self.profile.exercise_id} "
            f"{total_sets}x{reps_target}"
        )

    @property
    def exercise_id(self) -> str:
        return self.profile.exercise_id

    @property
    def rep_state(self) -> RepState:
        return self.counter.state

    # ═══════════════════════════════════════════════════════════════════════
    # FRAME PROCESSING
    # ═══════════════════════════════════════════════════════════════════════

    def process_pose(self, pose: Optional[Pose], now: Optional[float] = None) -> FrameUpdate:
        """
        Feed one pose sample through angle, form and repetition logic.

        Samples arriving while the set is completed or the session has ended,
        and samples yielding no usable angle, leave every counter untouched.
        """
        if not self.state.accepting_frames or pose is None:
            return self._rejected()

        self.last_pose = pose

        reading = compute_angle(self.profile, pose, self.min_keypoint_score)
        if reading is None:
            logger.debug(f"Session {self.session_id}: no usable angle, frame discarded")
            return self._rejected()

        rep = self.counter.state
        if reading.side is not None and self.profile.is_bilateral:
            rep.active_side = reading.side

        self.angle = reading.angle
        self.form_label = classify_profile(self.profile, reading.angle)

        outcome = self.counter.update(reading.angle, self.clock() if now is None else now)

        if outcome.rep_honored and rep.rep_count >= self.state.reps_target:
            self._complete_set()

        return FrameUpdate(
            accepted=True,
            angle=reading.angle,
            side=reading.side,
            form_label=self.form_label,
            stage=outcome.stage,
            rep_honored=outcome.rep_honored,
            rep_count=rep.rep_count,
            set_completed=self.state.set_completed,
            session_ended=self.state.session_ended,
        )

    def _rejected(self) -> FrameUpdate:
        return FrameUpdate(
            accepted=False,
            rep_count=self.counter.state.rep_count,
            set_completed=self.state.set_completed,
            session_ended=self.state.session_ended,
        )

    def _complete_set(self):
        self.state.set_completed = True
        self.state.running = False
        logger.info(f"Session {self.session_id}: set {self.state.current_set} complete")
        if self.state.current_set >= self.state.total_sets:
            self.state.session_ended = True
            logger.info(f"Session {self.session_id}: all {self.state.total_sets} sets done")

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def tick_elapsed(self) -> int:
        """Advance elapsed time by one second while the session is running."""
        if self.state.running and not self.state.session_ended:
            self.state.elapsed_seconds += 1
        return self.state.elapsed_seconds

    def start_next_set(self) -> bool:
        """Move on to the next set. Only valid before the last set."""
        if self.state.session_ended or self.state.current_set >= self.state.total_sets:
            return False

        self.state.current_set = min(self.state.current_set + 1, self.state.total_sets)
        self.counter.reset_set()
        self._reset_display()
        self.state.set_completed = False
        self.state.running = True
        logger.info(f"Session {self.session_id}: starting set {self.state.current_set}")
        return True

    def end_session(self) -> bool:
        """Stop the session without completing the current set."""
        if self.state.session_ended:
            return False
        self.state.running = False
        self.state.session_ended = True
        self.state.set_completed = False
        logger.info(f"Session {self.session_id} ended after {self.counter.state.total_reps_done} reps")
        return True

    def redo(self):
        """Full restart: counters, set index and elapsed time back to zero."""
        self.counter.reset_all()
        self._reset_display()
        self.last_pose = None
        self.state.current_set = 1
        self.state.elapsed_seconds = 0
        self.state.set_completed = False
        self.state.session_ended = False
        self.state.running = True
        logger.info(f"Session {self.session_id} restarted")

    def _reset_display(self):
        self.angle = 0.0
        self.form_label = DEFAULT_FORM_LABEL
        self.report_url = None

    # ═══════════════════════════════════════════════════════════════════════
    # REPORTING
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def form_score(self) -> float:
        return 0.9 if self.form_label == DEFAULT_FORM_LABEL else 0.7

    @property
    def progress(self) -> float:
        return min(1.0, self.counter.state.rep_count / (self.state.reps_target or 1))

    def report_metrics(self) -> ReportMetrics:
        return build_report_metrics(
            exercise_key=self.profile.exercise_id,
            exercise_name=self.profile.name,
            total_reps=self.counter.state.total_reps_done,
            reps_target=self.state.reps_target,
            total_sets=self.state.total_sets,
            duration=self.state.elapsed_seconds,
            form_score=self.form_score,
            patient_name=self.patient_name,
            patient_id=self.patient_id,
        )

    def overlay(self, mirror: bool = False) -> Dict[str, List[Dict[str, Any]]]:
        return build_overlay(
            self.profile,
            self.last_pose,
            self.counter.state.active_side,
            mirror=mirror,
            min_score=settings.OVERLAY_MIN_SCORE,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "session_id": self.session_id,
            "exercise_id": self.profile.exercise_id,
            "exercise_name": self.profile.name,
            "angle": round(self.angle, 1),
            "form_label": self.form_label,
            "progress_percent": round(self.progress * 100),
            "report_url": self.report_url,
            **self.counter.state.to_dict(),
            **self.state.to_dict(),
        }


class ExerciseSessionHandler:
    """
    Keeps live sessions by id and exposes their lifecycle as status dicts.
    """

    def __init__(self):
        self.active_sessions: Dict[str, ExerciseSession] = {}

    def create_session(
        self,
        exercise_id: str,
        reps_target: int = 10,
        total_sets: int = 1,
        patient_name: Optional[str] = None,
        patient_id: Optional[str] = None
    ) -> ExerciseSession:
        session = ExerciseSession(
            exercise_id,
            reps_target=reps_target,
            total_sets=total_sets,
            patient_name=patient_name,
            patient_id=patient_id,
        )
        self.active_sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> Optional[ExerciseSession]:
        return self.active_sessions.get(session_id)

    def process_pose(self, session_id: str, pose: Pose) -> Dict[str, Any]:
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        update = session.process_pose(pose)
        return {
            "session_id": session_id,
            "update": update.to_dict(),
            "status": session.to_dict(),
        }

    def tick(self, session_id: str) -> Dict[str, Any]:
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}
        return {"session_id": session_id, "elapsed_seconds": session.tick_elapsed()}

    def start_next_set(self, session_id: str) -> Dict[str, Any]:
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        if not session.start_next_set():
            return {"error": "All sets completed"}

        return {
            "status": "set_started",
            "session_id": session_id,
            "current_set": session.state.current_set,
            "total_sets": session.state.total_sets
        }

    def end_session(self, session_id: str) -> Dict[str, Any]:
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        if not session.end_session():
            return {"error": "Session already ended"}

        return {"status": "ended", "session_id": session_id, "summary": session.to_dict()}

    def redo_session(self, session_id: str) -> Dict[str, Any]:
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}

        session.redo()
        return {"status": "restarted", "session_id": session_id}

    def get_session_status(self, session_id: str) -> Dict[str, Any]:
        session = self.active_sessions.get(session_id)
        if not session:
            return {"error": "Session not found"}
        return session.to_dict()

    def cleanup_session(self, session_id: str):
        """Remove session from active sessions."""
        if session_id in self.active_sessions:
            del self.active_sessions[session_id]


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[ExerciseSessionHandler] = None

def get_session_handler() -> ExerciseSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = ExerciseSessionHandler()
    return _handler_instance
