"""
Pose source interface and a replay implementation for recorded sessions.

A pose source pushes ``PoseFrame``s into a callback from ``start()`` until
``stop()`` is called.  Live camera + detector sources live outside this
package; ``ReplayPoseSource`` plays back a recorded landmark sequence in
the same ``frames x 33 x [x, y, z, visibility]`` layout the mobile client
uploads.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, Field

from .landmarks import PoseFrame

logger = logging.getLogger(__name__)

FrameCallback = Callable[[PoseFrame], object]


class PoseSource(Protocol):
    def start(self, on_frame: FrameCallback) -> None:
        """Begin delivering frames; raise if the camera/detector is unavailable."""

    def stop(self) -> None:
        """Stop delivering frames and release the camera/detector."""


# ============================================================================
# Recorded sequences
# ============================================================================

class RecordingMetadata(BaseModel):
    fps: float = Field(gt=0)
    frame_count: Optional[int] = None
    device: str = "unknown"


class PoseRecording(BaseModel):
    """A recorded session: ``pose_sequence`` is frames x 33 x 4.

    Frames where the detector found nobody are empty lists.
    """

    exercise_view: Optional[str] = Field(default=None, description="'front' or 'side'")
    pose_sequence: List[List[List[float]]]
    metadata: RecordingMetadata

    def to_frames(self, start_ms: int = 0) -> List[PoseFrame]:
        return frames_from_sequence(self.pose_sequence, self.metadata.fps, start_ms)


def frames_from_sequence(
    pose_sequence: Sequence[Sequence[Sequence[float]]],
    fps: float,
    start_ms: int = 0,
) -> List[PoseFrame]:
    """Convert a raw landmark sequence into timestamped frames.

    Raises:
        ValueError: If *fps* is not positive or a frame has the wrong shape.
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}.")
    step_ms = 1000.0 / fps
    return [
        PoseFrame.from_array(rows, timestamp_ms=start_ms + int(round(i * step_ms)))
        for i, rows in enumerate(pose_sequence)
    ]


def load_recording(path: Union[str, Path]) -> PoseRecording:
    """Read a recorded session from a JSON file."""
    with open(path, "r") as f:
        data = json.load(f)
    recording = PoseRecording.model_validate(data)
    logger.info("Loaded %d frames at %.1f fps from %s",
                len(recording.pose_sequence), recording.metadata.fps, path)
    return recording


# ============================================================================
# Replay source
# ============================================================================

class ReplayPoseSource:
    """Plays back pre-built frames.

    Args:
        frames: Frames to deliver, in order.
        realtime: Sleep between frames according to their timestamps.
        threaded: Deliver from a background thread (like a camera callback);
            otherwise ``start()`` delivers every frame before returning.
        fail_on_start: Raise this from ``start()``; simulates a missing camera.
    """

    def __init__(
        self,
        frames: Sequence[PoseFrame],
        realtime: bool = False,
        threaded: bool = True,
        fail_on_start: Optional[Exception] = None,
    ):
        self.frames = list(frames)
        self.realtime = realtime
        self.threaded = threaded
        self.fail_on_start = fail_on_start
        self.delivered = 0
        self.start_calls = 0
        self.stop_calls = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, on_frame: FrameCallback) -> None:
        self.start_calls += 1
        if self.fail_on_start is not None:
            raise self.fail_on_start
        if self.running:
            raise RuntimeError("Replay already running")

        self._stop_event.clear()
        if self.threaded:
            self._thread = threading.Thread(
                target=self._run, args=(on_frame,), name="pose-replay", daemon=True
            )
            self._thread.start()
        else:
            self._run(on_frame)

    def stop(self) -> None:
        self.stop_calls += 1
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait until every frame has been delivered or the replay is stopped."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, on_frame: FrameCallback) -> None:
        previous_ts = None
        for frame in self.frames:
            if self._stop_event.is_set():
                break
            if self.realtime and previous_ts is not None:
                time.sleep(max(0.0, (frame.timestamp_ms - previous_ts) / 1000.0))
            previous_ts = frame.timestamp_ms
            on_frame(frame)
            self.delivered += 1
        logger.debug("Replay delivered %d/%d frames", self.delivered, len(self.frames))
