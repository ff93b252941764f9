"""
Pose data model, geometry helpers and detector-to-screen transforms.
"""

from .landmarks import Landmark, LandmarkType, PoseFrame, NUM_LANDMARKS
from .transform import (
    BoundingBox,
    LandmarkSmoother,
    PreviewFit,
    ScreenPoint,
    Size,
    bounding_box,
    preview_size,
    smooth_point,
    transform,
)

__all__ = [
    "Landmark",
    "LandmarkType",
    "PoseFrame",
    "NUM_LANDMARKS",
    "BoundingBox",
    "LandmarkSmoother",
    "PreviewFit",
    "ScreenPoint",
    "Size",
    "bounding_box",
    "preview_size",
    "smooth_point",
    "transform",
]
