"""
Frame-rate and processing-time monitoring for the session frame loop.

The controller feeds every frame it takes (with the wall-clock time spent on
it) and every frame it drops.  Frame rate comes from detector timestamps, so
replays report the recording's cadence rather than how fast they were fed.
"""

import logging
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import MONITOR_WINDOW
from ..pose.geometry import MovingAverage

logger = logging.getLogger(__name__)


class PerformanceLevel(str, Enum):
    OPTIMAL = "optimal"
    ACCEPTABLE = "acceptable"
    WARNING = "warning"
    CRITICAL = "critical"


class PerformanceThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    critical_fps: float = 15.0
    warning_fps: float = 20.0
    target_fps: float = 30.0
    critical_processing_ms: float = 66.0
    warning_processing_ms: float = 50.0
    target_processing_ms: float = 33.0
    max_drop_rate: float = Field(default=0.1, ge=0.0, le=1.0)


class PerformanceAlert(BaseModel):
    kind: str = Field(description="low_fps, slow_processing or frame_drops")
    level: PerformanceLevel
    message: str


class PerformanceReport(BaseModel):
    fps: float = 0.0
    mean_processing_ms: float = 0.0
    p95_processing_ms: float = 0.0
    drop_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    frames_seen: int = 0
    frames_dropped: int = 0
    level: PerformanceLevel = PerformanceLevel.OPTIMAL
    alerts: List[PerformanceAlert] = Field(default_factory=list)


class PerformanceMonitor:
    """Rolling fps, processing time and drop rate.

    Not thread-safe on its own; the controller updates it under its stats lock.

    Args:
        window: Number of recent frames averaged for fps and processing time.
        thresholds: Alert thresholds.
    """

    def __init__(self, window: int = MONITOR_WINDOW,
                 thresholds: Optional[PerformanceThresholds] = None):
        self.thresholds = thresholds or PerformanceThresholds()
        self._intervals = MovingAverage(window)
        self._processing = MovingAverage(window)
        self.reset()

    def reset(self) -> None:
        self._intervals.reset()
        self._processing.reset()
        self._last_ts: Optional[int] = None
        self.frames_seen = 0
        self.frames_dropped = 0

    def record_frame(self, timestamp_ms: int, processing_ms: float) -> None:
        """A frame was taken by the frame loop and handled in *processing_ms*."""
        self.frames_seen += 1
        self._processing.update(processing_ms)
        self._note_arrival(timestamp_ms)

    def record_drop(self, timestamp_ms: int) -> None:
        """A frame arrived while the previous one was still being processed."""
        self.frames_dropped += 1
        self._note_arrival(timestamp_ms)

    def _note_arrival(self, timestamp_ms: int) -> None:
        # Threaded sources can hand over frames slightly out of order.
        if self._last_ts is not None and timestamp_ms > self._last_ts:
            self._intervals.update(timestamp_ms - self._last_ts)
        if self._last_ts is None or timestamp_ms > self._last_ts:
            self._last_ts = timestamp_ms

    @property
    def fps(self) -> float:
        interval = self._intervals.value
        return 1000.0 / interval if interval else 0.0

    @property
    def drop_rate(self) -> float:
        total = self.frames_seen + self.frames_dropped
        return self.frames_dropped / total if total else 0.0

    def report(self) -> PerformanceReport:
        t = self.thresholds
        fps = self.fps
        mean_ms = self._processing.value or 0.0
        p95_ms = self._processing.percentile(95) or 0.0
        drop_rate = self.drop_rate

        alerts: List[PerformanceAlert] = []
        if 0 < fps < t.critical_fps:
            alerts.append(PerformanceAlert(kind="low_fps", level=PerformanceLevel.CRITICAL,
                                           message=f"Frame rate is very low ({fps:.1f} fps)"))
        elif 0 < fps < t.warning_fps:
            alerts.append(PerformanceAlert(kind="low_fps", level=PerformanceLevel.WARNING,
                                           message=f"Frame rate is low ({fps:.1f} fps)"))

        if mean_ms > t.critical_processing_ms:
            alerts.append(PerformanceAlert(
                kind="slow_processing", level=PerformanceLevel.CRITICAL,
                message=f"Frame processing is very slow ({mean_ms:.1f} ms)"))
        elif mean_ms > t.warning_processing_ms:
            alerts.append(PerformanceAlert(
                kind="slow_processing", level=PerformanceLevel.WARNING,
                message=f"Frame processing is slow ({mean_ms:.1f} ms)"))

        if drop_rate > t.max_drop_rate:
            alerts.append(PerformanceAlert(
                kind="frame_drops", level=PerformanceLevel.WARNING,
                message=f"Dropping frames ({drop_rate * 100:.1f}%)"))

        levels = {a.level for a in alerts}
        if PerformanceLevel.CRITICAL in levels:
            level = PerformanceLevel.CRITICAL
        elif PerformanceLevel.WARNING in levels:
            level = PerformanceLevel.WARNING
        elif fps >= t.target_fps and mean_ms <= t.target_processing_ms:
            level = PerformanceLevel.OPTIMAL
        else:
            level = PerformanceLevel.ACCEPTABLE

        return PerformanceReport(
            fps=fps,
            mean_processing_ms=mean_ms,
            p95_processing_ms=p95_ms,
            drop_rate=drop_rate,
            frames_seen=self.frames_seen,
            frames_dropped=self.frames_dropped,
            level=level,
            alerts=alerts,
        )

    def log_report(self) -> PerformanceReport:
        report = self.report()
        logger.info("Frame loop: %.1f fps, %.1f ms mean / %.1f ms p95 processing, "
                    "%.1f%% dropped (%s)", report.fps, report.mean_processing_ms,
                    report.p95_processing_ms, report.drop_rate * 100, report.level.value)
        for alert in report.alerts:
            logger.warning("Performance %s: %s", alert.level.value, alert.message)
        return report
