"""Tests for the detector-to-screen transform and landmark smoothing."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_coach.pose.landmarks import Landmark, LandmarkType, NUM_LANDMARKS, PoseFrame
from form_coach.pose.transform import (
    LandmarkSmoother,
    PreviewFit,
    ScreenPoint,
    Size,
    bounding_box,
    preview_size,
    smooth_point,
    transform,
)


def _lm(x, y, likelihood=0.9, lm_type=LandmarkType.NOSE):
    return Landmark(type=lm_type, x=x, y=y, likelihood=likelihood)


# ============================================================================
# Test: transform
# ============================================================================

class TestTransform:

    def test_fill_scales_each_axis(self):
        p = transform(_lm(0.25, 0.5), Size(640, 480), Size(1280, 960), mirrored=False,
                      fit=PreviewFit.FILL)
        assert p == ScreenPoint(320.0, 480.0)

    def test_mirrored_flips_x(self):
        plain = transform(_lm(0.25, 0.5), Size(640, 480), Size(1280, 960), mirrored=False,
                          fit=PreviewFit.FILL)
        mirror = transform(_lm(0.25, 0.5), Size(640, 480), Size(1280, 960), mirrored=True,
                           fit=PreviewFit.FILL)
        assert mirror.x == pytest.approx(1280 - plain.x)
        assert mirror.y == plain.y

    def test_cover_crops_overflow_evenly(self):
        image, screen = Size(480, 640), Size(1080, 1920)
        assert preview_size(image, screen, PreviewFit.COVER) == Size(1440.0, 1920)
        left = transform(_lm(0.0, 0.5), image, screen, mirrored=False)
        centre = transform(_lm(0.5, 0.5), image, screen, mirrored=False)
        assert left.x == pytest.approx(-180.0)
        assert centre == (pytest.approx(540.0), pytest.approx(960.0))

    def test_contain_letterboxes(self):
        image, screen = Size(480, 640), Size(1080, 1920)
        assert preview_size(image, screen, PreviewFit.CONTAIN) == Size(1080, 1440.0)
        top = transform(_lm(0.5, 0.0), image, screen, mirrored=False, fit=PreviewFit.CONTAIN)
        assert top.y == pytest.approx(240.0)

    def test_matching_aspect_is_plain_scaling(self):
        p = transform(_lm(0.1, 0.9), Size(640, 480), Size(320, 240), mirrored=False)
        assert p.x == pytest.approx(32.0)
        assert p.y == pytest.approx(216.0)

    def test_rotation(self):
        p = transform(_lm(1.0, 0.5), Size(100, 100), Size(100, 100), mirrored=False,
                      fit=PreviewFit.FILL, rotation_degrees=90)
        assert p.x == pytest.approx(50.0)
        assert p.y == pytest.approx(100.0)

    def test_non_finite_landmark_is_skipped(self):
        assert transform(_lm(float("nan"), 0.5), Size(640, 480), Size(640, 480),
                         mirrored=False) is None
        assert transform(_lm(0.5, float("inf")), Size(640, 480), Size(640, 480),
                         mirrored=True) is None


# ============================================================================
# Test: smoothing
# ============================================================================

class TestSmoothing:

    def test_first_point_unchanged(self):
        assert smooth_point(None, ScreenPoint(10, 20), 0.5) == ScreenPoint(10, 20)

    def test_blend(self):
        assert smooth_point(ScreenPoint(0, 0), ScreenPoint(10, 20), 0.5) == ScreenPoint(5, 10)
        assert smooth_point(ScreenPoint(0, 0), ScreenPoint(10, 20), 0.0) == ScreenPoint(10, 20)

    def test_converges_to_constant_input(self):
        smoother = LandmarkSmoother(alpha=0.7)
        smoother.smooth(LandmarkType.NOSE, ScreenPoint(0, 0))
        for _ in range(60):
            p = smoother.smooth(LandmarkType.NOSE, ScreenPoint(100, 50))
        assert p.x == pytest.approx(100.0, abs=1e-3)
        assert p.y == pytest.approx(50.0, abs=1e-3)

    def test_alpha_bounds(self):
        with pytest.raises(ValueError):
            LandmarkSmoother(alpha=1.0)
        with pytest.raises(ValueError):
            LandmarkSmoother(alpha=-0.1)

    def test_instances_do_not_share_state(self):
        a, b = LandmarkSmoother(0.5), LandmarkSmoother(0.5)
        a.smooth(LandmarkType.NOSE, ScreenPoint(0, 0))
        assert b.previous(LandmarkType.NOSE) is None
        assert b.smooth(LandmarkType.NOSE, ScreenPoint(8, 8)) == ScreenPoint(8, 8)

    def test_reset(self):
        smoother = LandmarkSmoother(0.5)
        smoother.smooth(LandmarkType.NOSE, ScreenPoint(0, 0))
        smoother.reset()
        assert smoother.previous(LandmarkType.NOSE) is None


class TestSmoothFrame:

    def _frame(self, x, ts=0, likelihood=0.9):
        rows = np.zeros((NUM_LANDMARKS, 4))
        rows[:, 0] = x
        rows[:, 1] = 0.5
        rows[:, 3] = likelihood
        return PoseFrame.from_array(rows, timestamp_ms=ts)

    def test_smooths_positions_only(self):
        smoother = LandmarkSmoother(0.5)
        smoother.smooth_frame(self._frame(0.2))
        out = smoother.smooth_frame(self._frame(0.4, ts=33, likelihood=0.6))
        nose = out.get(LandmarkType.NOSE)
        assert nose.x == pytest.approx(0.3)
        assert nose.likelihood == 0.6
        assert out.timestamp_ms == 33

    def test_input_frame_untouched(self):
        smoother = LandmarkSmoother(0.5)
        smoother.smooth_frame(self._frame(0.2))
        frame = self._frame(0.4)
        smoother.smooth_frame(frame)
        assert frame.get(LandmarkType.NOSE).x == 0.4

    def test_zero_alpha_passes_through(self):
        frame = self._frame(0.4)
        assert LandmarkSmoother(0.0).smooth_frame(frame) is frame

    def test_non_finite_passes_through(self):
        smoother = LandmarkSmoother(0.5)
        smoother.smooth_frame(self._frame(0.2))
        out = smoother.smooth_frame(self._frame(float("nan")))
        assert not out.get(LandmarkType.NOSE).is_finite
        assert smoother.previous(LandmarkType.NOSE) == ScreenPoint(0.2, 0.5)

    def test_project_frame_drops_low_confidence(self):
        rows = np.zeros((NUM_LANDMARKS, 4))
        rows[:, 0:2] = 0.5
        rows[:, 3] = 0.9
        rows[LandmarkType.LEFT_WRIST, 3] = 0.1
        frame = PoseFrame.from_array(rows, timestamp_ms=0)
        points = LandmarkSmoother(0.0).project_frame(frame, Size(640, 480), Size(640, 480),
                                                     mirrored=False, min_confidence=0.5)
        assert LandmarkType.LEFT_WRIST not in points
        assert points[LandmarkType.NOSE] == (pytest.approx(320.0), pytest.approx(240.0))


class TestBoundingBox:

    def test_padded_and_clipped(self):
        box = bounding_box([ScreenPoint(10, 10), ScreenPoint(110, 210)], Size(115, 500),
                           padding=0.1)
        assert box.left == pytest.approx(0.0)
        assert box.top == pytest.approx(0.0)
        assert box.right == pytest.approx(115.0)
        assert box.bottom == pytest.approx(230.0)

    def test_empty(self):
        assert bounding_box([], Size(100, 100)) is None
