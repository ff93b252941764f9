"""
Replay a recorded landmark file through a full training session.

Used to check analyzer thresholds against reference recordings.

Run:
    form-coach-replay recording.json --exercise squat --reps 10 --sets 1
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .analyzers.factory import create_analyzer
from .analyzers.models import ExerciseType
from .config import setup_logging
from .errors import CollaboratorUnavailableError, InvalidSessionConfigError
from .pose.source import ReplayPoseSource, load_recording
from .session.controller import SessionController
from .session.state import SessionConfig

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="form-coach-replay",
        description="Replay recorded pose landmarks through a form-coach session.",
    )
    ap.add_argument("recording", help="JSON file with metadata.fps and pose_sequence.")
    ap.add_argument("--exercise", required=True, choices=[e.value for e in ExerciseType])
    ap.add_argument("--reps", type=int, default=10, help="Target reps per set.")
    ap.add_argument("--sets", type=int, default=1, help="Target sets.")
    ap.add_argument("--smoothing", type=float, default=0.0,
                    help="Landmark smoothing factor in [0, 1).")
    ap.add_argument("--out", default=None, help="Write the summary JSON here as well.")
    ap.add_argument("--log-level", default=None)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = SessionConfig.create(
            exercise_type=args.exercise,
            target_reps=args.reps,
            target_sets=args.sets,
            rest_seconds=0,
            countdown_seconds=0,
        )
    except InvalidSessionConfigError as exc:
        for err in exc.errors:
            logger.error(err)
        return 2

    recording = load_recording(args.recording)
    source = ReplayPoseSource(recording.to_frames(), threaded=False)
    controller = SessionController(
        config,
        source,
        analyzer=create_analyzer(config.exercise_type),
        smoothing_alpha=args.smoothing,
    )

    try:
        # Frames are delivered synchronously inside start_session.
        controller.start_session(skip_setup=True)
    except CollaboratorUnavailableError as exc:
        logger.error("%s", exc)
        return 1

    summary = controller.stop_session()
    payload = summary.model_dump(mode="json")
    payload["frames"] = {
        "processed": controller.frames_processed,
        "dropped": controller.frames_dropped,
        "discarded": controller.frames_discarded,
    }
    payload["performance"] = controller.performance_report().model_dump(mode="json")

    if args.out:
        with open(args.out, "w") as f:
            json.dump(payload, f, indent=2)
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
