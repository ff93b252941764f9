"""
Detector-to-screen coordinate transform and exponential landmark smoothing.

``transform`` is a pure function: it maps one normalized landmark into screen
pixels for the current preview geometry.  Smoothing needs the previous
position of every landmark; that map lives in a caller-owned
``LandmarkSmoother`` so independent consumers (overlay painter, analyzer,
concurrent sessions in tests) never share state.
"""

import logging
import math
from enum import Enum
from typing import Dict, Iterable, NamedTuple, Optional

from .landmarks import Landmark, LandmarkType, PoseFrame

logger = logging.getLogger(__name__)


class Size(NamedTuple):
    width: float
    height: float


class ScreenPoint(NamedTuple):
    x: float
    y: float


class BoundingBox(NamedTuple):
    left: float
    top: float
    right: float
    bottom: float


class PreviewFit(str, Enum):
    """How the camera preview is laid out on screen."""

    COVER = "cover"      # fill the screen, crop the overflow
    CONTAIN = "contain"  # letterbox inside the screen
    FILL = "fill"        # stretch each axis independently


# ---------------------------------------------------------------------------
# Preview geometry
# ---------------------------------------------------------------------------

def preview_size(image_size: Size, screen_size: Size, fit: PreviewFit = PreviewFit.COVER) -> Size:
    """Size the preview occupies on screen for the given fit mode."""
    if fit == PreviewFit.FILL or image_size.height <= 0 or screen_size.height <= 0:
        return Size(screen_size.width, screen_size.height)

    image_aspect = image_size.width / image_size.height
    screen_aspect = screen_size.width / screen_size.height
    wider = image_aspect > screen_aspect

    if (fit == PreviewFit.COVER) == wider:
        return Size(screen_size.height * image_aspect, screen_size.height)
    return Size(screen_size.width, screen_size.width / image_aspect)


def _rotate_normalized(x: float, y: float, degrees: int):
    if degrees % 360 == 0:
        return x, y
    cx, cy = x - 0.5, y - 0.5
    rad = math.radians(degrees)
    cos_a, sin_a = math.cos(rad), math.sin(rad)
    return cx * cos_a - cy * sin_a + 0.5, cx * sin_a + cy * cos_a + 0.5


def transform(
    landmark: Landmark,
    image_size: Size,
    screen_size: Size,
    mirrored: bool,
    fit: PreviewFit = PreviewFit.COVER,
    rotation_degrees: int = 0,
) -> Optional[ScreenPoint]:
    """Map a detector-normalized landmark into screen pixels.

    The x and y axes get independent scale factors (the preview's width and
    height in pixels) so the preview keeps its aspect ratio on any screen; the
    preview is centred and any overflow cropped equally on both sides.

    Args:
        landmark: Landmark in detector-normalized coordinates.
        image_size: Size of the detector's input image.
        screen_size: Size of the drawing surface in pixels.
        mirrored: Flip horizontally (front-facing camera).
        fit: Preview layout mode.
        rotation_degrees: Sensor rotation applied before mirroring.

    Returns:
        The screen point, or ``None`` when the landmark has non-finite
        coordinates (the caller skips that point).
    """
    if not landmark.is_finite:
        return None

    x, y = _rotate_normalized(landmark.x, landmark.y, rotation_degrees)
    if mirrored:
        x = 1.0 - x

    preview = preview_size(image_size, screen_size, fit)
    scale_x = preview.width
    scale_y = preview.height
    offset_x = (screen_size.width - preview.width) / 2.0
    offset_y = (screen_size.height - preview.height) / 2.0
    return ScreenPoint(offset_x + x * scale_x, offset_y + y * scale_y)


# ---------------------------------------------------------------------------
# Smoothing
# ---------------------------------------------------------------------------

def smooth_point(previous: Optional[ScreenPoint], current: ScreenPoint, alpha: float) -> ScreenPoint:
    """Exponentially blend *current* towards *previous*.

    ``smoothed = previous + (current - previous) * (1 - alpha)``.  Returns
    *current* unchanged on the first frame or when ``alpha == 0``.
    """
    if previous is None or alpha <= 0.0:
        return current
    gain = 1.0 - alpha
    return ScreenPoint(
        previous.x + (current.x - previous.x) * gain,
        previous.y + (current.y - previous.y) * gain,
    )


class LandmarkSmoother:
    """Holds the previous smoothed position of each landmark for one consumer.

    Args:
        alpha: Smoothing factor in ``[0, 1)``; 0 disables smoothing.
    """

    def __init__(self, alpha: float = 0.5):
        if not 0.0 <= alpha < 1.0:
            raise ValueError(f"alpha must be in [0, 1), got {alpha}.")
        self.alpha = alpha
        self._previous: Dict[LandmarkType, ScreenPoint] = {}

    def reset(self) -> None:
        self._previous.clear()

    def previous(self, landmark_type: LandmarkType) -> Optional[ScreenPoint]:
        return self._previous.get(landmark_type)

    def smooth(self, landmark_type: LandmarkType, point: ScreenPoint) -> ScreenPoint:
        smoothed = smooth_point(self._previous.get(landmark_type), point, self.alpha)
        self._previous[landmark_type] = smoothed
        return smoothed

    def smooth_frame(self, frame: PoseFrame) -> PoseFrame:
        """Smooth landmark positions in normalized space.

        Likelihood and depth pass through untouched.  Landmarks with
        non-finite coordinates are passed through as-is so downstream
        validation still sees them; their previous positions are kept.
        """
        if not frame.is_pose_detected or self.alpha <= 0.0:
            return frame

        smoothed: Dict[LandmarkType, Landmark] = {}
        for lm_type, lm in frame.landmarks.items():
            if not lm.is_finite:
                smoothed[lm_type] = lm
                continue
            point = self.smooth(lm_type, ScreenPoint(lm.x, lm.y))
            smoothed[lm_type] = lm.model_copy(update={"x": point.x, "y": point.y})
        return frame.with_landmarks(smoothed)

    def project_frame(
        self,
        frame: PoseFrame,
        image_size: Size,
        screen_size: Size,
        mirrored: bool,
        fit: PreviewFit = PreviewFit.COVER,
        min_confidence: float = 0.0,
    ) -> Dict[LandmarkType, ScreenPoint]:
        """Transform and smooth every drawable landmark into screen space.

        Landmarks that are missing, non-finite, or below *min_confidence* are
        left out of the result.
        """
        points: Dict[LandmarkType, ScreenPoint] = {}
        for lm_type, lm in frame.landmarks.items():
            if not lm.meets_minimum(min_confidence):
                continue
            point = transform(lm, image_size, screen_size, mirrored, fit)
            if point is None:
                logger.debug("Skipping non-finite landmark %s", lm_type.name)
                continue
            points[lm_type] = self.smooth(lm_type, point)
        return points


def bounding_box(
    points: Iterable[ScreenPoint],
    screen_size: Size,
    padding: float = 0.1,
) -> Optional[BoundingBox]:
    """Padded box around *points*, clipped to the screen."""
    pts = list(points)
    if not pts:
        return None
    min_x = min(p.x for p in pts)
    max_x = max(p.x for p in pts)
    min_y = min(p.y for p in pts)
    max_y = max(p.y for p in pts)
    pad_x = (max_x - min_x) * padding
    pad_y = (max_y - min_y) * padding
    return BoundingBox(
        max(0.0, min_x - pad_x),
        max(0.0, min_y - pad_y),
        min(screen_size.width, max_x + pad_x),
        min(screen_size.height, max_y + pad_y),
    )
