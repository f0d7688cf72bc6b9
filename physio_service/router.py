"""
PHYSIOTRACK Physio Service Router

Endpoints for live exercise sessions: pose samples in, repetition counts,
form labels and set/session lifecycle out. Reports and uploaded-video
analysis are delegated to the upstream services.
"""

from fastapi import APIRouter, UploadFile, File, Form, HTTPException
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from shared.utils import format_elapsed

from .clients import PoseServiceClient, ReportServiceClient
from .models import (
    ExerciseSession,
    ExerciseSessionHandler,
    Pose,
    build_report_metrics,
    get_profile,
    get_session_handler,
    list_profiles,
)

router = APIRouter()


# Service instances (singleton pattern)
_session_handler: Optional[ExerciseSessionHandler] = None
_report_client: Optional[ReportServiceClient] = None
_pose_client: Optional[PoseServiceClient] = None


def get_services():
    """Get or initialize service instances."""
    global _session_handler, _report_client, _pose_client
    if _session_handler is None:
        _session_handler = get_session_handler()
    if _report_client is None:
        _report_client = ReportServiceClient()
    if _pose_client is None:
        _pose_client = PoseServiceClient()
    return _session_handler, _report_client, _pose_client


async def shutdown_services():
    """Close upstream client sessions."""
    global _pose_client
    if _pose_client is not None:
        await _pose_client.close()
        _pose_client = None


# ============= Pydantic Models =============

class StartSessionRequest(BaseModel):
    exercise_key: str
    reps: int = Field(10, ge=1)
    sets: int = Field(1, ge=1)
    patient_name: Optional[str] = None
    patient_id: Optional[str] = None


class KeypointIn(BaseModel):
    """Partial records are accepted; the engine skips unusable keypoints."""
    name: Optional[str] = None
    part: Optional[str] = None
    bodyPart: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    score: Optional[float] = None


class PoseSampleRequest(BaseModel):
    keypoints: List[KeypointIn] = []


class VideoReportRequest(BaseModel):
    exercise_key: str
    reps: int = 0
    duration: float = 0.0
    form_score: float = 0.8
    assigned_reps: int = Field(10, ge=1)
    sets: int = Field(1, ge=1)
    patient_name: Optional[str] = None
    patient_id: Optional[str] = None


# ============= Helpers =============

def _require_session(handler: ExerciseSessionHandler, session_id: str) -> ExerciseSession:
    session = handler.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _check(result: Dict[str, Any]) -> Dict[str, Any]:
    if "error" in result:
        status = 404 if result["error"] == "Session not found" else 400
        raise HTTPException(status_code=status, detail=result["error"])
    return result


# ============= REST Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """Exercise registry."""
    profiles = [p.to_dict() for p in list_profiles()]
    return {"exercises": profiles, "total": len(profiles)}


@router.post("/session/start")
async def start_exercise_session(request: StartSessionRequest):
    """
    Start a live session.

    Unknown exercise keys are accepted but only produce form labels, never
    repetitions.
    """
    handler, _, _ = get_services()

    session = handler.create_session(
        exercise_id=request.exercise_key,
        reps_target=request.reps,
        total_sets=request.sets,
        patient_name=request.patient_name,
        patient_id=request.patient_id,
    )

    return {
        "status": "created",
        "session_id": session.session_id,
        "exercise": session.profile.to_dict(),
        "target": {
            "reps": request.reps,
            "sets": request.sets
        }
    }


@router.get("/session/{session_id}")
async def get_session_status(session_id: str, mirror: bool = False):
    """Current session status plus the skeleton overlay for the last pose."""
    handler, _, _ = get_services()
    session = _require_session(handler, session_id)

    status = session.to_dict()
    status["elapsed"] = format_elapsed(session.state.elapsed_seconds)
    status["overlay"] = session.overlay(mirror=mirror)
    return status


@router.post("/session/{session_id}/pose")
async def submit_pose_sample(session_id: str, request: PoseSampleRequest):
    """Process one pose sample from the pose-estimation service."""
    handler, _, _ = get_services()

    pose = Pose.from_dict({"keypoints": [kp.model_dump() for kp in request.keypoints]})
    return _check(handler.process_pose(session_id, pose))


@router.post("/session/{session_id}/tick")
async def tick_session(session_id: str):
    """Advance elapsed session time by one second."""
    handler, _, _ = get_services()
    return _check(handler.tick(session_id))


@router.post("/session/{session_id}/next-set")
async def start_next_set(session_id: str):
    handler, _, _ = get_services()
    return _check(handler.start_next_set(session_id))


@router.post("/session/{session_id}/end")
async def end_session(session_id: str):
    handler, _, _ = get_services()
    return _check(handler.end_session(session_id))


@router.post("/session/{session_id}/redo")
async def redo_session(session_id: str):
    handler, _, _ = get_services()
    return _check(handler.redo_session(session_id))


@router.delete("/session/{session_id}")
async def delete_session(session_id: str):
    handler, _, _ = get_services()
    _require_session(handler, session_id)
    handler.cleanup_session(session_id)
    return {"status": "deleted", "session_id": session_id}


@router.post("/session/{session_id}/report")
async def generate_session_report(session_id: str):
    """Send session aggregates to the report service and return the PDF location."""
    handler, report_client, _ = get_services()
    session = _require_session(handler, session_id)

    metrics = session.report_metrics()
    result = await report_client.generate_report(metrics)
    if "error" in result:
        raise HTTPException(status_code=502, detail=result["error"])

    session.report_url = result["url"]
    return {
        "status": "report_ready",
        "session_id": session_id,
        "url": result["url"],
        "metrics": metrics.to_payload()
    }


@router.post("/analyze-video")
async def analyze_video(
    file: UploadFile = File(...),
    exercise_key: str = Form("squat"),
    assigned_reps: int = Form(10),
    sets: int = Form(1),
    patient_name: Optional[str] = Form(None),
    patient_id: Optional[str] = Form(None)
):
    """Forward an uploaded exercise video to the pose service for offline analysis."""
    _, _, pose_client = get_services()

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty video upload")

    analysis = await pose_client.analyze_video(
        content,
        exercise_key=exercise_key,
        assigned_reps=assigned_reps,
        sets=sets,
        filename=file.filename or "exercise.mp4",
        patient_name=patient_name,
        patient_id=patient_id,
    )
    if analysis is None:
        raise HTTPException(status_code=502, detail="Failed to analyze the uploaded video.")
    return analysis


@router.post("/analyze-video/report")
async def generate_video_report(request: VideoReportRequest):
    """Report for an uploaded video, from the figures its analysis returned."""
    _, report_client, _ = get_services()

    metrics = build_report_metrics(
        exercise_key=request.exercise_key,
        exercise_name=get_profile(request.exercise_key).name,
        total_reps=request.reps,
        reps_target=request.assigned_reps,
        total_sets=request.sets,
        duration=request.duration,
        form_score=request.form_score,
        patient_name=request.patient_name,
        patient_id=request.patient_id,
    )
    result = await report_client.generate_report(metrics)
    if "error" in result:
        raise HTTPException(status_code=502, detail=result["error"])

    return {"status": "report_ready", "url": result["url"], "metrics": metrics.to_payload()}
