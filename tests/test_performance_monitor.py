"""Tests for the frame loop performance monitor.

Covers:
  - Frame rate from detector timestamps
  - Mean and 95th percentile processing time
  - Drop rate and alert levels
"""

import logging
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_coach.session.monitor import (
    PerformanceLevel,
    PerformanceMonitor,
    PerformanceThresholds,
)


def _feed(monitor, count, step_ms, processing_ms, start_ms=0):
    for i in range(count):
        monitor.record_frame(start_ms + i * step_ms, processing_ms)


def _kinds(report):
    return [a.kind for a in report.alerts]


# ============================================================================
# Test: Frame rate
# ============================================================================

class TestFrameRate:

    def test_30hz_is_optimal(self):
        monitor = PerformanceMonitor()
        _feed(monitor, 40, 33, 10.0)
        report = monitor.report()
        assert report.fps == pytest.approx(1000.0 / 33)
        assert report.level == PerformanceLevel.OPTIMAL
        assert report.alerts == []

    def test_20hz_is_acceptable(self):
        monitor = PerformanceMonitor()
        _feed(monitor, 40, 50, 10.0)
        report = monitor.report()
        assert report.fps == pytest.approx(20.0)
        assert report.level == PerformanceLevel.ACCEPTABLE
        assert report.alerts == []

    def test_low_fps_warning(self):
        monitor = PerformanceMonitor()
        _feed(monitor, 20, 60, 10.0)
        report = monitor.report()
        assert _kinds(report) == ["low_fps"]
        assert report.level == PerformanceLevel.WARNING

    def test_very_low_fps_is_critical(self):
        monitor = PerformanceMonitor()
        _feed(monitor, 20, 100, 10.0)
        report = monitor.report()
        assert report.alerts[0].level == PerformanceLevel.CRITICAL
        assert report.level == PerformanceLevel.CRITICAL

    def test_window_keeps_recent_frames(self):
        monitor = PerformanceMonitor(window=5)
        _feed(monitor, 10, 100, 10.0)
        _feed(monitor, 10, 33, 10.0, start_ms=1000)
        assert monitor.fps == pytest.approx(1000.0 / 33)

    def test_out_of_order_timestamps_are_skipped(self):
        monitor = PerformanceMonitor()
        for ts in (0, 100, 50, 200):
            monitor.record_frame(ts, 5.0)
        assert monitor.fps == pytest.approx(10.0)
        assert monitor.frames_seen == 4

    def test_single_frame_has_no_rate(self):
        monitor = PerformanceMonitor()
        monitor.record_frame(0, 5.0)
        report = monitor.report()
        assert report.fps == 0.0
        assert "low_fps" not in _kinds(report)


# ============================================================================
# Test: Processing time
# ============================================================================

class TestProcessingTime:

    def test_mean_and_p95(self):
        monitor = PerformanceMonitor()
        for i in range(20):
            monitor.record_frame(i * 33, float(i + 1))
        report = monitor.report()
        assert report.mean_processing_ms == pytest.approx(10.5)
        assert report.p95_processing_ms == pytest.approx(19.05)

    @pytest.mark.parametrize("processing_ms, level", [
        (40.0, PerformanceLevel.ACCEPTABLE),
        (60.0, PerformanceLevel.WARNING),
        (70.0, PerformanceLevel.CRITICAL),
    ])
    def test_slow_processing(self, processing_ms, level):
        monitor = PerformanceMonitor()
        _feed(monitor, 30, 33, processing_ms)
        report = monitor.report()
        assert report.level == level
        if level != PerformanceLevel.ACCEPTABLE:
            assert _kinds(report) == ["slow_processing"]

    def test_custom_thresholds(self):
        monitor = PerformanceMonitor(thresholds=PerformanceThresholds(warning_processing_ms=5.0))
        _feed(monitor, 30, 33, 10.0)
        assert monitor.report().level == PerformanceLevel.WARNING


# ============================================================================
# Test: Drops
# ============================================================================

class TestDrops:

    def test_drop_rate_warning(self):
        monitor = PerformanceMonitor()
        _feed(monitor, 10, 33, 10.0)
        monitor.record_drop(330)
        monitor.record_drop(363)
        report = monitor.report()
        assert report.frames_seen == 10
        assert report.frames_dropped == 2
        assert report.drop_rate == pytest.approx(2 / 12)
        assert _kinds(report) == ["frame_drops"]
        assert report.level == PerformanceLevel.WARNING

    def test_drops_count_towards_frame_rate(self):
        monitor = PerformanceMonitor()
        monitor.record_frame(0, 5.0)
        monitor.record_drop(33)
        monitor.record_frame(66, 5.0)
        assert monitor.fps == pytest.approx(1000.0 / 33)

    def test_reset(self):
        monitor = PerformanceMonitor()
        _feed(monitor, 10, 100, 80.0)
        monitor.record_drop(1000)
        monitor.reset()
        report = monitor.report()
        assert report.frames_seen == 0
        assert report.frames_dropped == 0
        assert report.fps == 0.0
        assert report.mean_processing_ms == 0.0
        assert report.alerts == []

    def test_log_report_warns_per_alert(self, caplog):
        monitor = PerformanceMonitor()
        _feed(monitor, 10, 100, 80.0)
        with caplog.at_level(logging.INFO, logger="form_coach.session.monitor"):
            report = monitor.log_report()
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == len(report.alerts) == 2
