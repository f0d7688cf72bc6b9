"""
PHYSIOTRACK Physio Service - Pose Estimation Client

Sends captured frames (and uploaded videos) to the remote pose-estimation
service. A failed call never raises: it yields no pose for that tick.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from core.config import settings

from ..models.geometry import Pose

logger = logging.getLogger(__name__)


class PoseServiceClient:
    """
    Thin aiohttp client for `/analyze_frame` and `/analyze_video`.

    No retries: a frame that fails to analyze is a missed sample.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.base_url = (base_url or settings.POSE_SERVICE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.HTTP_TIMEOUT_SECONDS)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def analyze_frame(self, image_base64: str, exercise_key: str) -> Optional[Pose]:
        """
        Analyze one base64-encoded frame.

        Returns the parsed pose, or None on any non-success response or
        transport failure.
        """
        url = f"{self.base_url}/analyze_frame"
        payload = {"image_base64": image_base64, "exercise_key": exercise_key}

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                if response.status != 200:
                    logger.warning(f"Pose service returned {response.status}; frame skipped")
                    return None
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Pose service call failed: {type(e).__name__}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning("Pose service returned a non-object body; frame skipped")
            return None

        return Pose.from_dict(data.get("pose") or {"keypoints": []})

    async def analyze_video(
        self,
        video: bytes,
        exercise_key: str,
        assigned_reps: int,
        sets: int,
        filename: str = "exercise.mp4",
        patient_name: Optional[str] = None,
        patient_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Upload a recorded exercise video for offline analysis.

        Returns the service's analysis dict (reps, duration, form_score, ...)
        with `processed_video_url` made absolute, or None on failure.
        """
        url = f"{self.base_url}/analyze_video"

        form = aiohttp.FormData()
        form.add_field("file", video, filename=filename, content_type="video/mp4")
        form.add_field("exercise_key", str(exercise_key))
        form.add_field("patient_name", patient_name or settings.DEFAULT_PATIENT_NAME)
        form.add_field("patient_id", patient_id or settings.DEFAULT_PATIENT_ID)
        form.add_field("assigned_reps", str(assigned_reps))
        form.add_field("sets", str(sets))

        try:
            session = await self._get_session()
            async with session.post(url, data=form) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.error(f"Video analysis failed ({response.status}): {body[:200]}")
                    return None
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Video analysis call failed: {type(e).__name__}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error("Video analysis returned a non-object body")
            return None

        if data.get("processed_video_url"):
            data["processed_video_url"] = f"{self.base_url}{data['processed_video_url']}"
        logger.info(f"Video analyzed: {data.get('reps', 'N/A')} reps detected")
        return data
