"""
Session controller: owns the frame loop for one training session.

Per frame: smooth -> analyze -> pick the surfaced issue -> update the session
state machine.  Frames and timer ticks are serialized on one lock.  A frame
that arrives while another is still being processed is dropped, never
queued; ticks wait for the lock so no timer transition is lost.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from ..analyzers.base import BaseFormAnalyzer
from ..analyzers.factory import create_analyzer
from ..analyzers.feedback import FeedbackSelector
from ..analyzers.models import FrameResult
from ..config import (
    FEEDBACK_INTERVAL_MS,
    MONITOR_WINDOW,
    RECOMMENDED_CONFIDENCE,
    SMOOTHING_ALPHA,
)
from ..errors import CollaboratorUnavailableError, SessionStateError
from ..pose.landmarks import PoseFrame
from ..pose.source import PoseSource
from ..pose.transform import LandmarkSmoother
from .monitor import PerformanceMonitor, PerformanceReport
from .state import SessionConfig, SessionPhase, TERMINAL_PHASES, TrainingSession, TrainingSessionState
from .summary import SessionSummary, build_session_summary
from .ticker import SessionTicker

logger = logging.getLogger(__name__)

# Vertical extent of the body (normalized) that counts as a good camera distance.
_MIN_BODY_EXTENT = 0.4
_MAX_BODY_EXTENT = 0.95


class ControllerStatus(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class SessionController:
    """Drives one session from setup to completion.

    Args:
        config: Validated session configuration.
        pose_source: Camera + detector collaborator delivering ``PoseFrame``s.
        analyzer: Analyzer to use; created from ``config.exercise_type`` if omitted.
        smoothing_alpha: Landmark smoothing factor, 0 disables smoothing.
        feedback_interval_ms: Hold time for a surfaced issue.
        tick_interval: Run a background ticker with this period (seconds).
            ``None`` leaves ticking to the caller via ``tick()``.
        clock: Monotonic clock in seconds for set durations.
    """

    def __init__(
        self,
        config: SessionConfig,
        pose_source: PoseSource,
        analyzer: Optional[BaseFormAnalyzer] = None,
        smoothing_alpha: float = SMOOTHING_ALPHA,
        feedback_interval_ms: int = FEEDBACK_INTERVAL_MS,
        tick_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.pose_source = pose_source
        self.analyzer = analyzer if analyzer is not None else create_analyzer(config.exercise_type)
        if self.analyzer.exercise_type != config.exercise_type:
            raise ValueError(
                f"Analyzer for '{self.analyzer.exercise_type.value}' does not match "
                f"session exercise '{config.exercise_type.value}'."
            )
        self.session = TrainingSession(config, clock=clock)
        self.smoother = LandmarkSmoother(smoothing_alpha)
        self.feedback = FeedbackSelector(feedback_interval_ms)
        self.tick_interval = tick_interval

        self._lock = threading.Lock()
        # Reentrant: a source may deliver frames synchronously from start().
        self._source_lock = threading.RLock()
        self._stats_lock = threading.Lock()
        self._status = ControllerStatus.IDLE
        self._source_active = False
        self._ticker: Optional[SessionTicker] = None
        self._last_result: Optional[FrameResult] = None

        self.frames_processed = 0
        self.frames_dropped = 0
        self.frames_discarded = 0
        self.performance = PerformanceMonitor(window=MONITOR_WINDOW)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def status(self) -> ControllerStatus:
        return self._status

    @property
    def state(self) -> TrainingSessionState:
        with self._lock:
            return self.session.state

    @property
    def last_result(self) -> Optional[FrameResult]:
        return self._last_result

    def summary(self) -> SessionSummary:
        with self._lock:
            return build_session_summary(self.session.state)

    def performance_report(self) -> PerformanceReport:
        with self._stats_lock:
            return self.performance.report()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(self, skip_setup: bool = False) -> None:
        """Enter setup and start the pose source.

        Args:
            skip_setup: Tick the whole checklist before the first frame
                arrives (quick start, used for replays).

        Raises:
            CollaboratorUnavailableError: The pose source could not be started.
                Session state is back in ``idle``; calling again retries.
            SessionStateError: The session is already running or finished.
        """
        with self._lock:
            if self._status in (ControllerStatus.INITIALIZING, ControllerStatus.RUNNING):
                raise SessionStateError("Session already started")
            self.session.begin_setup()
            if skip_setup:
                self.session.skip_setup()
            self._status = ControllerStatus.INITIALIZING

        logger.info("Starting pose source for %s session", self.config.exercise_type.value)
        with self._source_lock:
            self._source_active = True
            try:
                self.pose_source.start(self.on_frame)
            except Exception as exc:
                self._source_active = False
                with self._lock:
                    self.session.abort_setup(f"Pose source unavailable: {exc}")
                    self._status = ControllerStatus.IDLE
                logger.warning("Pose source failed to start: %s", exc)
                raise CollaboratorUnavailableError(
                    f"Camera or pose detector unavailable: {exc}", recoverable=True
                ) from exc

        with self._lock:
            if self._status == ControllerStatus.INITIALIZING:
                self._status = ControllerStatus.RUNNING
            finished = self.session.phase in TERMINAL_PHASES

        if self.tick_interval and not finished:
            self._ticker = SessionTicker(self.tick, self.tick_interval)
            self._ticker.start()

    def pause_session(self) -> None:
        with self._lock:
            self.session.pause()
            self.analyzer.pause()

    def resume_session(self) -> None:
        """Resume where the session paused; an unfinished rep carries on."""
        with self._lock:
            self.session.resume()
            self.analyzer.resume()

    def stop_session(self) -> SessionSummary:
        """Release the pose source and finalize the session.

        The source is stopped before waiting for any in-flight frame, so no
        subscription outlives this call.
        """
        self._release_source()
        self._stop_ticker()
        with self._stats_lock:
            self.performance.log_report()
        with self._lock:
            self.session.finish()
            if self._status != ControllerStatus.FAILED:
                self._status = ControllerStatus.STOPPED
            return build_session_summary(self.session.state)

    def report_source_failure(self, error: BaseException, recoverable: bool = True) -> None:
        """Called by the pose source when capture or detection fails.

        Recoverable failures only record the message.  Otherwise the source is
        released and the session ends in ``errored`` with its finished sets
        intact.
        """
        if recoverable:
            logger.warning("Pose source reported a recoverable error: %s", error)
            with self._lock:
                self.session.note_error(str(error))
            return

        self._release_source()
        self._stop_ticker()
        with self._lock:
            self.session.fail(f"Pose source failed: {error}")
            self._status = ControllerStatus.FAILED

    # ------------------------------------------------------------------
    # User actions during setup / rest
    # ------------------------------------------------------------------

    def check_item(self, item_id: str, checked: bool = True) -> None:
        with self._lock:
            self.session.set_checklist_item(item_id, checked)

    def skip_setup(self) -> None:
        with self._lock:
            self.session.skip_setup()

    def skip_countdown(self) -> None:
        with self._lock:
            self.session.skip_countdown()

    def skip_rest(self) -> None:
        with self._lock:
            self.session.skip_rest()

    def tick(self, seconds: float) -> bool:
        """Advance countdown/rest timers; blocks until any frame in flight is done."""
        with self._lock:
            if self._status not in (ControllerStatus.INITIALIZING, ControllerStatus.RUNNING):
                return False
            return self.session.tick(seconds)

    # ------------------------------------------------------------------
    # Frame path
    # ------------------------------------------------------------------

    def on_frame(self, frame: PoseFrame) -> bool:
        """Frame callback handed to the pose source.

        Returns:
            True if the frame was processed, False if dropped or discarded.
        """
        if not self._lock.acquire(blocking=False):
            with self._stats_lock:
                self.frames_dropped += 1
                self.performance.record_drop(frame.timestamp_ms)
            return False
        started = time.perf_counter()
        try:
            processed = self._process_frame(frame)
            finished = self.session.phase in TERMINAL_PHASES
        finally:
            self._lock.release()
        with self._stats_lock:
            self.performance.record_frame(frame.timestamp_ms,
                                          (time.perf_counter() - started) * 1000.0)

        if finished:
            self._release_source()
            self._stop_ticker()
        return processed

    def _process_frame(self, frame: PoseFrame) -> bool:
        if self._status not in (ControllerStatus.INITIALIZING, ControllerStatus.RUNNING):
            self._count_discarded()
            return False

        phase = self.session.phase
        if phase == SessionPhase.SETTING_UP:
            self._auto_check_setup(frame)
            return True
        if phase != SessionPhase.ACTIVE:
            self._count_discarded()
            return False

        result = self.analyzer.analyze(self.smoother.smooth_frame(frame))
        if result.neutral:
            surfaced = self.feedback.current
        else:
            surfaced = self.feedback.select(result.issues, frame.timestamp_ms)
        self.session.record_frame(result, surfaced)

        if result.completed_rep is not None:
            set_finished = self.session.record_rep(result.completed_rep)
            if set_finished:
                self.analyzer.reset()
                self.smoother.reset()
                self.feedback.reset()

        self._last_result = result
        with self._stats_lock:
            self.frames_processed += 1
        return True

    def _auto_check_setup(self, frame: PoseFrame) -> None:
        if not frame.is_pose_detected:
            return
        checks = {}
        required = self.analyzer.required_landmarks
        # Side-view exercises only need the near side to be reliable.
        checks["full_body"] = bool(self.analyzer.usable_sides(frame)) and (
            not self.analyzer.BILATERAL
            or frame.all_meet_threshold(required, RECOMMENDED_CONFIDENCE)
        )
        checks["brightness"] = frame.average_confidence() >= RECOMMENDED_CONFIDENCE

        ys = [lm.y for lm in frame.landmarks.values()
              if lm.is_finite and lm.meets_minimum(RECOMMENDED_CONFIDENCE)]
        if ys:
            extent = max(ys) - min(ys)
            checks["distance"] = _MIN_BODY_EXTENT <= extent <= _MAX_BODY_EXTENT

        for item_id, ok in checks.items():
            if ok and self.session.phase == SessionPhase.SETTING_UP:
                self.session.set_checklist_item(item_id, True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _count_discarded(self) -> None:
        with self._stats_lock:
            self.frames_discarded += 1

    def _release_source(self) -> None:
        with self._source_lock:
            if not self._source_active:
                return
            self._source_active = False
        # Stopped outside the lock: a threaded source may be joined here while
        # its own thread is on its way through this method.
        logger.info("Releasing pose source")
        try:
            self.pose_source.stop()
        except Exception as exc:
            logger.warning("Pose source did not stop cleanly: %s", exc)

    def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop()
