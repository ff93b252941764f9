"""
Pose landmark data structures.

A ``PoseFrame`` holds the landmarks a pose detector produced for one camera
frame.  Coordinates are detector-normalized (x, y in [0, 1] of the preview
image, z relative depth); ``likelihood`` is the detector's visibility score.
Frames are immutable and never modified by the analysis pipeline.
"""

import math
from enum import IntEnum
from typing import Dict, Iterable, Optional, Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator


NUM_LANDMARKS = 33


class LandmarkType(IntEnum):
    """The 33 body keypoints, valued by their detector output index."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class Landmark(BaseModel):
    """One detected keypoint."""

    model_config = ConfigDict(frozen=True)

    type: LandmarkType
    x: float
    y: float
    z: float = 0.0
    likelihood: float = Field(ge=0.0, le=1.0, description="Detector visibility (0-1)")

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def meets_minimum(self, threshold: float) -> bool:
        return self.likelihood >= threshold

    def xy(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)


class PoseFrame(BaseModel):
    """All landmarks detected at one instant.

    ``is_pose_detected`` defaults to whether any landmark is present.
    """

    model_config = ConfigDict(frozen=True)

    landmarks: Dict[LandmarkType, Landmark] = Field(default_factory=dict)
    timestamp_ms: int = Field(ge=0)
    is_pose_detected: bool = False

    @model_validator(mode="before")
    @classmethod
    def _default_detection_flag(cls, data):
        if isinstance(data, dict) and data.get("is_pose_detected") is None:
            data = dict(data)
            data["is_pose_detected"] = bool(data.get("landmarks"))
        return data

    def get(self, landmark_type: LandmarkType) -> Optional[Landmark]:
        return self.landmarks.get(landmark_type)

    def all_meet_threshold(self, types: Iterable[LandmarkType], threshold: float) -> bool:
        """True when every landmark in *types* is present with likelihood >= threshold."""
        for t in types:
            lm = self.landmarks.get(t)
            if lm is None or not lm.meets_minimum(threshold):
                return False
        return True

    def average_confidence(self, types: Optional[Iterable[LandmarkType]] = None) -> float:
        if types is None:
            values = [lm.likelihood for lm in self.landmarks.values()]
        else:
            values = [self.landmarks[t].likelihood for t in types if t in self.landmarks]
        return float(np.mean(values)) if values else 0.0

    def with_landmarks(self, landmarks: Dict[LandmarkType, Landmark]) -> "PoseFrame":
        """Copy of this frame carrying *landmarks* instead."""
        return PoseFrame(
            landmarks=landmarks,
            timestamp_ms=self.timestamp_ms,
            is_pose_detected=self.is_pose_detected,
        )

    @classmethod
    def empty(cls, timestamp_ms: int) -> "PoseFrame":
        return cls(landmarks={}, timestamp_ms=timestamp_ms, is_pose_detected=False)

    @classmethod
    def from_array(cls, rows: Sequence[Sequence[float]], timestamp_ms: int) -> "PoseFrame":
        """Build a frame from detector rows of ``[x, y, z, visibility]``.

        Args:
            rows: 33 rows in landmark index order, or an empty sequence when
                the detector found no pose.
            timestamp_ms: Frame timestamp in milliseconds.

        Raises:
            ValueError: If *rows* is neither empty nor shaped (33, 4).
        """
        arr = np.asarray(rows, dtype=np.float64)
        if arr.size == 0:
            return cls.empty(timestamp_ms)
        if arr.shape != (NUM_LANDMARKS, 4):
            raise ValueError(
                f"Expected {NUM_LANDMARKS} landmarks x 4 values (x, y, z, visibility), "
                f"got shape {arr.shape}."
            )
        landmarks = {
            t: Landmark(
                type=t,
                x=float(arr[t, 0]),
                y=float(arr[t, 1]),
                z=float(arr[t, 2]),
                likelihood=float(np.clip(np.nan_to_num(arr[t, 3]), 0.0, 1.0)),
            )
            for t in LandmarkType
        }
        return cls(landmarks=landmarks, timestamp_ms=timestamp_ms, is_pose_detected=True)
