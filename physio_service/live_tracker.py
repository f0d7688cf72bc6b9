"""
PHYSIOTRACK Physio Service - Live Tracker

Periodic capture -> analyze -> update cycle for a live session.

Two independent asyncio timers drive a session:
- the frame timer fires every FRAME_TICK_MS. Each tick may start one
  capture/analyze task; while that task occupies the single slot further
  ticks are dropped (never queued). Ticks closer than SAMPLE_INTERVAL_MS to
  the last accepted capture are dropped as well.
- the elapsed timer advances session time once per second.

Both timers and any in-flight task are cancelled by `stop()`.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol

from core.config import settings

from .models.exercise_session import ExerciseSession, FrameUpdate
from .models.geometry import Pose

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    async def capture(self) -> Optional[str]:
        ...


class PoseAnalyzer(Protocol):
    async def analyze_frame(self, image_base64: str, exercise_key: str) -> Optional[Pose]:
        ...


class LiveTracker:
    """Runs the sampling loop for one ExerciseSession."""

    def __init__(
        self,
        session: ExerciseSession,
        frame_source: FrameSource,
        pose_client: PoseAnalyzer,
        on_update: Optional[Callable[[FrameUpdate], Any]] = None,
        tick_ms: Optional[int] = None,
        sample_interval_ms: Optional[int] = None,
        elapsed_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.session = session
        self.frame_source = frame_source
        self.pose_client = pose_client
        self.on_update = on_update
        self.tick_interval = (tick_ms or settings.FRAME_TICK_MS) / 1000.0
        self.sample_interval = (
            settings.SAMPLE_INTERVAL_MS if sample_interval_ms is None else sample_interval_ms
        ) / 1000.0
        self.elapsed_interval = elapsed_interval or settings.ELAPSED_TICK_SECONDS
        self.clock = clock

        self._frame_task: Optional[asyncio.Task] = None
        self._elapsed_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._last_capture: Optional[float] = None

        # Stats
        self._ticks = 0
        self._dropped_busy = 0
        self._dropped_rate = 0
        self._failed_cycles = 0
        self._processed = 0

    @property
    def is_running(self) -> bool:
        return self._frame_task is not None

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    # ═══════════════════════════════════════════════════════════════════════
    # TIMERS
    # ═══════════════════════════════════════════════════════════════════════

    async def start(self):
        """Start both timers. Calling start twice is a no-op."""
        if self.is_running:
            return

        async def frame_loop():
            while True:
                await asyncio.sleep(self.tick_interval)
                self.tick()

        async def elapsed_loop():
            while True:
                await asyncio.sleep(self.elapsed_interval)
                self.session.tick_elapsed()

        self._frame_task = asyncio.create_task(frame_loop())
        self._elapsed_task = asyncio.create_task(elapsed_loop())
        logger.info(
            f"▶️ Live tracking started for session {self.session.session_id} "
            f"(tick {self.tick_interval * 1000:.0f}ms, sample {self.sample_interval * 1000:.0f}ms)"
        )

    async def stop(self):
        """Cancel both timers and any in-flight cycle, and wait for them to finish."""
        tasks = [t for t in (self._frame_task, self._elapsed_task, self._inflight) if t is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._frame_task = None
        self._elapsed_task = None
        self._inflight = None
        logger.info(f"⏹️ Live tracking stopped for session {self.session.session_id}")

    # ═══════════════════════════════════════════════════════════════════════
    # CAPTURE CYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def tick(self) -> Optional[asyncio.Task]:
        """
        Handle one frame-timer tick.

        Returns the started cycle task, or None when the tick was dropped.
        """
        self._ticks += 1

        if not self.session.state.accepting_frames:
            return None

        if self.busy:
            self._dropped_busy += 1
            return None

        now = self.clock()
        if self._last_capture is not None and now - self._last_capture < self.sample_interval:
            self._dropped_rate += 1
            return None
        self._last_capture = now

        self._inflight = asyncio.create_task(self._run_cycle())
        return self._inflight

    async def _run_cycle(self) -> Optional[FrameUpdate]:
        try:
            image = await self.frame_source.capture()
            if not image:
                self._failed_cycles += 1
                return None

            pose = await self.pose_client.analyze_frame(image, self.session.exercise_id)
            if pose is None:
                self._failed_cycles += 1
                return None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed_cycles += 1
            logger.warning(f"Capture/analyze cycle failed: {type(e).__name__}: {e}")
            return None

        update = self.session.process_pose(pose)
        self._processed += 1

        if self.on_update is not None:
            try:
                result = self.on_update(update)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Update callback failed: {type(e).__name__}: {e}")

        return update

    def get_stats(self) -> Dict[str, Any]:
        """Get tracker statistics."""
        return {
            "running": self.is_running,
            "ticks": self._ticks,
            "dropped_busy": self._dropped_busy,
            "dropped_rate_limited": self._dropped_rate,
            "failed_cycles": self._failed_cycles,
            "processed": self._processed,
        }
