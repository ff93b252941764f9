"""
Geometry utilities for form analysis.

Pure functions over 2D points.  Anything with ``.x`` / ``.y`` attributes
(``Landmark``, ``ScreenPoint``) or an ``(x, y)`` sequence is accepted; depth is
ignored because detector z is too noisy to score form with.
"""

import math
from collections import deque
from typing import Deque, Optional, Tuple

import numpy as np


_EPS = 1e-9


def _xy(p) -> np.ndarray:
    if hasattr(p, "x") and hasattr(p, "y"):
        return np.array([p.x, p.y], dtype=np.float64)
    arr = np.asarray(p, dtype=np.float64)
    return arr[:2]


# ---------------------------------------------------------------------------
# Angles
# ---------------------------------------------------------------------------

def angle_at(a, vertex, c) -> float:
    """Angle in degrees at *vertex* formed by the segments to *a* and *c*.

    Uses ``cos(theta) = (v1 . v2) / (|v1| |v2|)`` clipped to [-1, 1].  The
    result lies in [0, 180].

    Returns:
        The angle, or ``nan`` when either segment has zero length or any input
        is non-finite.  Callers treat ``nan`` as missing data.
    """
    ba = _xy(a) - _xy(vertex)
    bc = _xy(c) - _xy(vertex)
    if not (np.all(np.isfinite(ba)) and np.all(np.isfinite(bc))):
        return float("nan")

    mag_ba = np.linalg.norm(ba)
    mag_bc = np.linalg.norm(bc)
    if mag_ba < _EPS or mag_bc < _EPS:
        return float("nan")

    cos_angle = np.clip(np.dot(ba, bc) / (mag_ba * mag_bc), -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_angle)))


def is_valid_angle(angle: Optional[float]) -> bool:
    """True for a finite angle in [0, 360)."""
    return angle is not None and math.isfinite(angle) and 0.0 <= angle < 360.0


def vertical_angle(upper, lower) -> float:
    """Angle of the segment from vertical: 0 vertical, 90 horizontal."""
    d = _xy(lower) - _xy(upper)
    return float(np.degrees(np.arctan2(abs(d[0]), abs(d[1]))))


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------

def distance(a, b) -> float:
    return float(np.linalg.norm(_xy(a) - _xy(b)))


def midpoint(a, b) -> Tuple[float, float]:
    m = (_xy(a) + _xy(b)) / 2.0
    return float(m[0]), float(m[1])


def signed_distance_to_line(point, line_start, line_end) -> float:
    """Perpendicular distance from *point* to the line, signed by side.

    Positive on the side ``(-dy, dx)`` points to, which is below a line running
    left to right in image coordinates (y down).  Returns 0 for a degenerate
    line.
    """
    start = _xy(line_start)
    d = _xy(line_end) - start
    normal = np.array([-d[1], d[0]])
    mag = np.linalg.norm(normal)
    if mag < _EPS:
        return 0.0
    return float(np.dot(_xy(point) - start, normal) / mag)


# ---------------------------------------------------------------------------
# Symmetry
# ---------------------------------------------------------------------------

def symmetry_delta(left: float, right: float) -> float:
    """Absolute left/right difference."""
    return abs(left - right)


def symmetry(left: float, right: float) -> float:
    """Left/right symmetry ratio in [0, 1]; 1 is perfectly symmetric."""
    largest = max(abs(left), abs(right))
    if largest < _EPS:
        return 1.0
    return 1.0 - min(1.0, abs(left - right) / largest)


# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------

class MovingAverage:
    """Moving average over the last *window* values.

    Also answers percentiles over the same window, e.g. p95 processing time.
    """

    def __init__(self, window: int = 5):
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}.")
        self._values: Deque[float] = deque(maxlen=window)

    def update(self, value: float) -> float:
        self._values.append(value)
        return float(np.mean(self._values))

    @property
    def value(self) -> Optional[float]:
        return float(np.mean(self._values)) if self._values else None

    def percentile(self, q: float) -> Optional[float]:
        """*q*-th percentile (0-100) of the window, ``None`` when empty."""
        return float(np.percentile(list(self._values), q)) if self._values else None

    def __len__(self) -> int:
        return len(self._values)

    def reset(self) -> None:
        self._values.clear()


class VelocityTracker:
    """Rate of change of a scalar signal in units per second."""

    def __init__(self):
        self._last_value: Optional[float] = None
        self._last_ts: Optional[int] = None

    def update(self, value: float, timestamp_ms: int) -> Optional[float]:
        """Record *value* and return the velocity since the previous sample.

        Returns ``None`` on the first sample or when timestamps do not advance.
        """
        velocity = None
        if self._last_value is not None and self._last_ts is not None:
            dt = (timestamp_ms - self._last_ts) / 1000.0
            if dt > 0:
                velocity = (value - self._last_value) / dt
        self._last_value = value
        self._last_ts = timestamp_ms
        return velocity

    def reset(self) -> None:
        self._last_value = None
        self._last_ts = None
