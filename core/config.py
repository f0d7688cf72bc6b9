"""
PHYSIOTRACK Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "PHYSIOTRACK"
    DEBUG: bool = True

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8081", "http://10.0.2.2:8000"]

    # Upstream services
    POSE_SERVICE_URL: str = "http://localhost:8000"
    REPORT_SERVICE_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Live tracking cadence
    FRAME_TICK_MS: int = 100
    SAMPLE_INTERVAL_MS: int = 300
    MIN_REP_INTERVAL_MS: int = 700
    ELAPSED_TICK_SECONDS: float = 1.0

    # Keypoint filtering
    MIN_KEYPOINT_SCORE: float = 0.0
    OVERLAY_MIN_SCORE: float = 0.4

    # Camera capture
    CAMERA_INDEX: int = 0
    CAPTURE_JPEG_QUALITY: int = 30

    # Report defaults
    DEFAULT_PATIENT_NAME: str = "Somay Singh"
    DEFAULT_PATIENT_ID: str = "P-2025-001"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
