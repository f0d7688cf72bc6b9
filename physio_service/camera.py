"""
PHYSIOTRACK Physio Service - Camera Frame Source

OpenCV webcam capture producing base64 JPEG frames for the pose service.
"""

import asyncio
import base64
import logging
from typing import Optional

import cv2
import numpy as np

from core.config import settings

logger = logging.getLogger(__name__)


def encode_frame(frame: np.ndarray, quality: int = 30) -> Optional[str]:
    """Encode a BGR frame as base64 JPEG. Returns None if encoding fails."""
    ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        return None
    return base64.b64encode(buffer.tobytes()).decode("ascii")


class CameraFrameSource:
    """
    Reads frames from an OpenCV VideoCapture.

    Blocking reads run in the default executor so the event loop keeps
    serving the timers.
    """

    def __init__(self, camera_index: Optional[int] = None, jpeg_quality: Optional[int] = None):
        self.camera_index = settings.CAMERA_INDEX if camera_index is None else camera_index
        self.jpeg_quality = jpeg_quality or settings.CAPTURE_JPEG_QUALITY
        self._capture: Optional[cv2.VideoCapture] = None

    def open(self) -> bool:
        self._capture = cv2.VideoCapture(self.camera_index)
        if not self._capture.isOpened():
            logger.error(f"Cannot open camera {self.camera_index}")
            self._capture = None
            return False
        logger.info(f"📷 Camera {self.camera_index} opened")
        return True

    def _read_encoded(self) -> Optional[str]:
        if self._capture is None:
            return None
        ret, frame = self._capture.read()
        if not ret or frame is None:
            return None
        return encode_frame(frame, self.jpeg_quality)

    async def capture(self) -> Optional[str]:
        """Grab one frame as base64 JPEG, or None if no frame is available."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._read_encoded)

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self.camera_index} released")
