"""
PHYSIOTRACK Backend API
Physiotherapy Exercise Tracking

FastAPI application entry point exposing live exercise sessions
(repetition counting, form labels, set lifecycle) and session reports.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Service routers
from physio_service.router import router as physio_router, shutdown_services

from shared.utils import setup_logger

LOG_LEVEL = logging.DEBUG if settings.DEBUG else logging.INFO

logger = setup_logger("physiotrack.main", level=LOG_LEVEL)
request_logger = setup_logger("physiotrack.requests", level=LOG_LEVEL)


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        query_string = f"?{request.url.query}" if request.url.query else ""

        request_logger.info(f"➡️  {request.method} {request.url.path}{query_string}")
        request_logger.debug(f"    Client: {client_ip}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            if response.status_code < 300:
                status_emoji = "✅"
            elif response.status_code < 400:
                status_emoji = "↪️"
            elif response.status_code < 500:
                status_emoji = "⚠️"
            else:
                status_emoji = "❌"

            request_logger.info(
                f"{status_emoji} {request.method} {request.url.path} → {response.status_code} ({process_time:.1f}ms)"
            )

            return response
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.exception(
                f"💥 {request.method} {request.url.path} → ERROR: {type(e).__name__}: {str(e)} ({process_time:.1f}ms)"
            )
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info("🚀 PHYSIOTRACK API starting up...")
    logger.info(f"Pose service: {settings.POSE_SERVICE_URL}")
    logger.info(f"Report service: {settings.REPORT_SERVICE_URL}")
    logger.info("✅ PHYSIOTRACK API ready!")

    yield  # Application runs here

    # ===== SHUTDOWN =====
    logger.info("👋 PHYSIOTRACK API shutting down...")
    await shutdown_services()
    logger.info("✅ Shutdown complete")


app = FastAPI(
    title="PHYSIOTRACK API",
    description="Physiotherapy exercise tracking - repetition counting and form feedback",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "physiotrack-api",
    }


app.include_router(physio_router, prefix="/api/physio", tags=["Physio Service"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
