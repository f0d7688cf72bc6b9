#!/usr/bin/env python3
"""
PHYSIOTRACK - Live Session Runner

Runs a live exercise session against a local webcam: frames are sent to the
pose-estimation service and repetition/form updates are printed as they come.

Usage:
    python scripts/live_session.py --exercise squat --reps 10 --sets 3
    python scripts/live_session.py --exercise bicep_curl --pose-url http://192.168.1.20:8000
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from core.config import settings
from shared.utils import setup_logger, format_elapsed
from physio_service.camera import CameraFrameSource
from physio_service.clients import PoseServiceClient, ReportServiceClient
from physio_service.live_tracker import LiveTracker
from physio_service.models import EXERCISE_PROFILES, ExerciseSession, FrameUpdate

logger = setup_logger("physiotrack.live", level=logging.INFO)


def print_update(session: ExerciseSession, update: FrameUpdate):
    if not update.accepted:
        return
    side = f" [{update.side.value}]" if update.side else ""
    print(
        f"  {format_elapsed(session.state.elapsed_seconds)} "
        f"set {session.state.current_set}/{session.state.total_sets} "
        f"reps {update.rep_count}/{session.state.reps_target} "
        f"angle {update.angle:6.1f}{side} stage {update.stage.value:>4} "
        f"| {update.form_label}"
    )
    if update.rep_honored:
        print("  REP!")


async def run(args) -> int:
    session = ExerciseSession(
        args.exercise,
        reps_target=args.reps,
        total_sets=args.sets,
        patient_name=args.patient_name,
        patient_id=args.patient_id,
    )

    logger.info(
        f"Starting {session.profile.name} session {session.session_id}: "
        f"{args.sets} set(s) x {args.reps} reps"
    )

    camera = CameraFrameSource(camera_index=args.camera)
    if not camera.open():
        return 1

    pose_client = PoseServiceClient(base_url=args.pose_url)
    tracker = LiveTracker(
        session,
        camera,
        pose_client,
        on_update=lambda update: print_update(session, update),
    )

    await tracker.start()
    try:
        while not session.state.session_ended:
            await asyncio.sleep(0.5)
            if session.state.set_completed:
                print(f"\n✅ Set {session.state.current_set} complete. Next set in {args.rest}s...")
                await asyncio.sleep(args.rest)
                session.start_next_set()
    finally:
        await tracker.stop()
        await pose_client.close()
        camera.release()

    status = session.to_dict()
    print("\n" + "=" * 60)
    print(f"Session finished: {status['total_reps_done']} reps in {format_elapsed(status['elapsed_seconds'])}")
    print(f"Tracker stats: {tracker.get_stats()}")
    print("=" * 60)

    if args.report:
        report_client = ReportServiceClient(base_url=args.report_url)
        result = await report_client.generate_report(session.report_metrics())
        if "error" in result:
            logger.error(f"Report failed: {result['error']}")
            return 1
        print(f"Report ready: {result['url']}")

    return 0


def main():
    """Main entry point for CLI usage."""
    parser = argparse.ArgumentParser(
        description='Run a live physiotherapy exercise session from a webcam'
    )
    parser.add_argument(
        '-e', '--exercise',
        type=str,
        default='squat',
        help=f"Exercise key (known: {', '.join(EXERCISE_PROFILES)})"
    )
    parser.add_argument('--reps', type=int, default=10, help='Target reps per set')
    parser.add_argument('--sets', type=int, default=1, help='Number of sets')
    parser.add_argument('--camera', type=int, default=settings.CAMERA_INDEX, help='OpenCV camera index')
    parser.add_argument('--rest', type=float, default=10.0, help='Rest between sets (seconds)')
    parser.add_argument('--pose-url', type=str, default=None, help='Pose-estimation service base URL')
    parser.add_argument('--report-url', type=str, default=None, help='Report service base URL')
    parser.add_argument('--report', action='store_true', help='Request a PDF report at the end')
    parser.add_argument('--patient-name', type=str, default=None)
    parser.add_argument('--patient-id', type=str, default=None)

    args = parser.parse_args()

    if args.reps < 1 or args.sets < 1:
        print("Error: --reps and --sets must be at least 1")
        sys.exit(2)

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == '__main__':
    main()
