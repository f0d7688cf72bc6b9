"""
PHYSIOTRACK Physio Service - Report Generation Client

Posts session aggregates to the report service and resolves the returned
document location.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from core.config import settings

from ..models.exercise_session import ReportMetrics

logger = logging.getLogger(__name__)


class ReportServiceClient:
    """aiohttp client for `/generate_report`."""

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: Optional[float] = None):
        self.base_url = (base_url or settings.REPORT_SERVICE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.HTTP_TIMEOUT_SECONDS)

    async def generate_report(self, metrics: ReportMetrics) -> Dict[str, Any]:
        """
        Request a PDF report.

        Returns {"url": <absolute document url>} on success and
        {"error": <message>} otherwise.
        """
        url = f"{self.base_url}/generate_report"

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, json=metrics.to_payload()) as response:
                    if response.status != 200:
                        body = await response.text()
                        logger.error(f"Report generation failed ({response.status}): {body[:200]}")
                        return {"error": "Failed to generate PDF report."}
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Report service call failed: {type(e).__name__}: {e}")
            return {"error": "Something went wrong while generating the report."}

        doc_path = data.get("url") if isinstance(data, dict) else None
        if not doc_path:
            logger.error("Report service response had no document url")
            return {"error": "Failed to generate PDF report."}

        full_url = f"{self.base_url}{doc_path}"
        logger.info(f"Report ready for {metrics.exercise_key}: {full_url}")
        return {"url": full_url}
