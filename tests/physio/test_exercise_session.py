"""
Session controller tests: set/session lifecycle, elapsed time, reporting.
"""

import math

import pytest

from physio_service.models import (
    ExerciseSession,
    ExerciseSessionHandler,
    Keypoint,
    Pose,
    SessionPhase,
    Side,
    Stage,
    build_report_metrics,
)
from core.config import settings
from physio_service.models.exercise_profiles import ARM, LEG


def do_squat_reps(session, pose_builder, clock, count, side="left"):
    """Stand, squat, stand; two seconds per repetition."""
    for _ in range(count):
        for angle in (170, 90):
            pose = pose_builder(**{side: angle})
            session.process_pose(pose)
            clock.advance(1.0)


@pytest.fixture
def squat_session(clock):
    return ExerciseSession("squat", reps_target=3, total_sets=2, session_id="s1", clock=clock)


class TestConstruction:

    @pytest.mark.parametrize("reps, sets", [(0, 1), (1, 0), (-2, 3)])
    def test_rejects_non_positive_targets(self, reps, sets):
        with pytest.raises(ValueError):
            ExerciseSession("squat", reps_target=reps, total_sets=sets)

    def test_initial_state(self, squat_session):
        status = squat_session.to_dict()
        assert status["phase"] == "running"
        assert status["current_set"] == 1
        assert status["rep_count"] == 0
        assert status["stage"] == "-"
        assert status["form_label"] == "Good"
        assert status["angle"] == 0.0


class TestFrameProcessing:

    def test_frame_updates_angle_form_and_side(self, squat_session, limb_pose):
        update = squat_session.process_pose(limb_pose(left=165, right=120))

        assert update.accepted
        assert update.side == Side.RIGHT
        assert update.angle == pytest.approx(120.0)
        assert update.form_label == "Try going a bit lower"
        assert squat_session.rep_state.active_side == Side.RIGHT

    def test_frame_without_angle_is_rejected(self, squat_session, limb_pose):
        squat_session.process_pose(limb_pose(left=170))
        update = squat_session.process_pose(limb_pose(left=90, joints=("shoulder", "elbow", "wrist")))

        assert not update.accepted
        assert squat_session.rep_state.stage == Stage.UP
        assert squat_session.rep_state.rep_count == 0
        assert squat_session.angle == pytest.approx(170.0)

    def test_set_completes_at_target(self, squat_session, limb_pose, clock):
        do_squat_reps(squat_session, limb_pose, clock, 3)

        assert squat_session.state.set_completed
        assert not squat_session.state.running
        assert not squat_session.state.session_ended
        assert squat_session.state.phase == SessionPhase.SET_COMPLETED
        assert squat_session.rep_state.rep_count == 3

    def test_frames_ignored_after_set_completed(self, squat_session, limb_pose, clock):
        do_squat_reps(squat_session, limb_pose, clock, 3)
        do_squat_reps(squat_session, limb_pose, clock, 2)

        assert squat_session.rep_state.rep_count == 3
        assert squat_session.rep_state.total_reps_done == 3
        update = squat_session.process_pose(limb_pose(left=170))
        assert not update.accepted
        assert update.set_completed

    def test_last_set_ends_session(self, limb_pose, clock):
        session = ExerciseSession("squat", reps_target=3, total_sets=1, clock=clock)
        do_squat_reps(session, limb_pose, clock, 3)

        assert session.state.set_completed
        assert session.state.session_ended
        assert session.state.phase == SessionPhase.ENDED

    def test_debounced_rep_does_not_count(self, squat_session, limb_pose, clock):
        squat_session.process_pose(limb_pose(left=170))
        squat_session.process_pose(limb_pose(left=90))
        clock.advance(0.2)
        squat_session.process_pose(limb_pose(left=170))
        clock.advance(0.2)
        update = squat_session.process_pose(limb_pose(left=90))

        assert not update.rep_honored
        assert squat_session.rep_state.rep_count == 1

    def test_unknown_exercise_tracks_nothing(self, clock, limb_pose):
        session = ExerciseSession("plank", clock=clock)
        update = session.process_pose(limb_pose(left=170, right=90))

        assert not update.accepted
        assert session.rep_state.rep_count == 0
        assert not session.profile.counts_reps


class TestLifecycle:

    def test_elapsed_ticks_only_while_running(self, squat_session, limb_pose, clock):
        squat_session.tick_elapsed()
        squat_session.tick_elapsed()
        assert squat_session.state.elapsed_seconds == 2

        do_squat_reps(squat_session, limb_pose, clock, 3)
        squat_session.tick_elapsed()
        assert squat_session.state.elapsed_seconds == 2

        squat_session.start_next_set()
        squat_session.tick_elapsed()
        assert squat_session.state.elapsed_seconds == 3

    def test_start_next_set(self, squat_session, limb_pose, clock):
        do_squat_reps(squat_session, limb_pose, clock, 3)
        assert squat_session.start_next_set()

        state = squat_session.state
        assert state.current_set == 2
        assert state.running and not state.set_completed
        assert squat_session.rep_state.rep_count == 0
        assert squat_session.rep_state.stage == Stage.UNSET
        assert squat_session.rep_state.total_reps_done == 3
        assert squat_session.angle == 0.0
        assert squat_session.form_label == "Good"

        do_squat_reps(squat_session, limb_pose, clock, 3)
        assert squat_session.state.session_ended
        assert squat_session.rep_state.total_reps_done == 6

    def test_next_set_rejected_on_last_set(self, limb_pose, clock):
        session = ExerciseSession("squat", reps_target=1, total_sets=1, clock=clock)
        do_squat_reps(session, limb_pose, clock, 1)

        assert not session.start_next_set()
        assert session.state.current_set == 1

    def test_end_session(self, squat_session, limb_pose, clock):
        do_squat_reps(squat_session, limb_pose, clock, 1)
        assert squat_session.end_session()

        state = squat_session.state
        assert state.session_ended and not state.running and not state.set_completed
        assert not squat_session.process_pose(limb_pose(left=170)).accepted
        assert not squat_session.end_session()
        assert not squat_session.start_next_set()

    def test_redo_restarts_everything(self, squat_session, limb_pose, clock):
        do_squat_reps(squat_session, limb_pose, clock, 3)
        squat_session.start_next_set()
        squat_session.tick_elapsed()
        squat_session.end_session()

        squat_session.redo()

        state = squat_session.state
        assert state.current_set == 1
        assert state.elapsed_seconds == 0
        assert state.running and not state.set_completed and not state.session_ended
        assert squat_session.rep_state.rep_count == 0
        assert squat_session.rep_state.total_reps_done == 0
        assert squat_session.rep_state.active_side is None
        assert squat_session.last_pose is None

        do_squat_reps(squat_session, limb_pose, clock, 1)
        assert squat_session.rep_state.rep_count == 1


class TestReporting:

    def test_report_metrics(self, limb_pose, clock):
        session = ExerciseSession(
            "squat", reps_target=2, total_sets=2,
            patient_name="Asha Rao", patient_id="P-7", clock=clock,
        )
        do_squat_reps(session, limb_pose, clock, 2)
        session.start_next_set()
        for _ in range(10):
            session.tick_elapsed()

        payload = session.report_metrics().to_payload()
        assert payload == {
            "patient_name": "Asha Rao",
            "patient_id": "P-7",
            "exercise": "Squats",
            "exercise_key": "squat",
            "reps": 2,
            "assigned_reps": 4,
            "sets": 2,
            "duration": 10,
            "avg_time": 5.0,
            "form_score": 0.9,
        }

    def test_report_defaults_without_reps(self):
        metrics = build_report_metrics(
            exercise_key="squat", exercise_name=None, total_reps=0,
            reps_target=10, total_sets=1, duration=30, form_score=0.7,
        )
        assert metrics.avg_time == 0
        assert metrics.exercise == "squat"
        assert metrics.patient_name == settings.DEFAULT_PATIENT_NAME
        assert metrics.patient_id == settings.DEFAULT_PATIENT_ID

    def test_form_score_follows_label(self, squat_session, limb_pose):
        squat_session.process_pose(limb_pose(left=120))
        assert squat_session.form_score == 0.7

    def test_progress(self, squat_session, limb_pose, clock):
        do_squat_reps(squat_session, limb_pose, clock, 2)
        assert squat_session.progress == pytest.approx(2 / 3)
        assert squat_session.to_dict()["progress_percent"] == 67


class TestOverlay:

    def test_active_side_only(self, squat_session, limb_pose):
        squat_session.process_pose(limb_pose(left=160, right=100))
        overlay = squat_session.overlay()

        assert {j["name"] for j in overlay["joints"]} == {"right_hip", "right_knee", "right_ankle"}
        assert len(overlay["segments"]) == 2

    def test_mirror(self, squat_session, limb_pose):
        squat_session.process_pose(limb_pose(left=90))
        plain = {j["name"]: j["x"] for j in squat_session.overlay()["joints"]}
        mirrored = {j["name"]: j["x"] for j in squat_session.overlay(mirror=True)["joints"]}

        for name, x in plain.items():
            assert mirrored[name] == pytest.approx(1 - x)

    def test_low_confidence_joints_hidden(self, squat_session, limb_pose):
        squat_session.process_pose(limb_pose(left=90, score=0.2))
        assert squat_session.overlay() == {"joints": [], "segments": []}

    def test_no_pose_yet(self, squat_session):
        assert squat_session.overlay() == {"joints": [], "segments": []}


class TestSessionHandler:

    def test_unknown_session(self):
        handler = ExerciseSessionHandler()
        for call in (handler.tick, handler.start_next_set, handler.end_session,
                     handler.redo_session, handler.get_session_status):
            assert call("missing") == {"error": "Session not found"}

    def test_lifecycle_results(self):
        handler = ExerciseSessionHandler()
        session = handler.create_session("squat", reps_target=2, total_sets=1)
        sid = session.session_id

        assert handler.tick(sid)["elapsed_seconds"] == 1
        assert handler.start_next_set(sid) == {"error": "All sets completed"}
        assert handler.end_session(sid)["status"] == "ended"
        assert handler.end_session(sid) == {"error": "Session already ended"}
        assert handler.redo_session(sid)["status"] == "restarted"

        handler.cleanup_session(sid)
        assert handler.get_session(sid) is None


def side_bend_pose(angle: float) -> Pose:
    """Shoulders tilted so both shoulder-hip-hip angles equal `angle` degrees."""
    theta = math.radians(angle)
    dx, dy = 0.3 * math.cos(theta), 0.3 * math.sin(theta)
    return Pose([
        Keypoint("left_hip", 0.4, 0.6, 0.9),
        Keypoint("right_hip", 0.6, 0.6, 0.9),
        Keypoint("left_shoulder", 0.4 + dx, 0.6 - dy, 0.9),
        Keypoint("right_shoulder", 0.6 - dx, 0.6 - dy, 0.9),
    ])


class TestExerciseFamilies:

    @pytest.mark.parametrize("exercise_id, joints, start, finish", [
        ("bicep_curl", ARM, 160, 40),
        ("shoulder_abduction", ARM, 160, 40),
        ("squat", LEG, 170, 90),
        ("knee_extension", LEG, 170, 90),
        ("leg_raise", LEG, 170, 90),
    ])
    def test_limb_exercise_counts_one_rep(self, exercise_id, joints, start, finish, limb_pose, clock):
        session = ExerciseSession(exercise_id, reps_target=5, clock=clock)

        armed = session.process_pose(limb_pose(left=start, joints=joints))
        clock.advance(1.0)
        done = session.process_pose(limb_pose(left=finish, joints=joints))

        assert armed.accepted and not armed.rep_honored
        assert done.rep_honored
        assert session.rep_state.rep_count == 1
        assert done.stage == session.profile.rep_rule.complete_stage

    def test_shoulder_abduction_ignores_leg_joints(self, limb_pose, clock):
        session = ExerciseSession("shoulder_abduction", reps_target=5, clock=clock)
        session.process_pose(limb_pose(left=160, joints=LEG))
        session.process_pose(limb_pose(left=40, joints=LEG))
        assert session.rep_state.rep_count == 0

    def test_side_bend_counts_from_averaged_angle(self, clock):
        session = ExerciseSession("side_bend", reps_target=5, clock=clock)

        upright = session.process_pose(side_bend_pose(60))
        clock.advance(1.0)
        bent = session.process_pose(side_bend_pose(20))

        assert upright.angle == pytest.approx(60.0)
        assert upright.stage == Stage.UP
        assert upright.side is None
        assert bent.angle == pytest.approx(20.0)
        assert bent.rep_honored
        assert bent.stage == Stage.DOWN
        assert bent.form_label == "Nice side bend"
        assert session.rep_state.active_side is None
