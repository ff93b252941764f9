"""
Shoulder press form analyzer (front view).

The drive angle is the mean elbow angle, opening from about 90 deg with the
weights at shoulder height to full lockout overhead.
"""

from typing import Dict, List, Optional

import numpy as np

from ..pose.geometry import angle_at, distance, symmetry, vertical_angle
from ..pose.landmarks import PoseFrame
from .base import SIDES, BaseFormAnalyzer, IssueSpec, Scorecard
from .models import ExerciseType, FeedbackPriority as P, RepPhase


class ShoulderPressAnalyzer(BaseFormAnalyzer):
    exercise_type = ExerciseType.SHOULDER_PRESS
    REST_PHASE = RepPhase.BOTTOM
    DIRECTION = 1
    DRIVE_ANGLE = "elbow"
    SIDE_JOINTS = ("shoulder", "elbow", "wrist", "hip")
    BILATERAL = True

    ISSUES = {
        "incomplete_press": IssueSpec(
            "Press all the way up", P.MEDIUM,
            "Extend your arms fully overhead at the top", "elbows"),
        "back_lean": IssueSpec(
            "You are leaning back", P.CRITICAL,
            "Squeeze your glutes and keep your ribs down", "lower back"),
        "press_path_deviation": IssueSpec(
            "Your {side} forearm is tilting", P.MEDIUM,
            "Keep your {side} wrist stacked over your elbow", "{side} forearm"),
        "uneven_height": IssueSpec(
            "Your hands are at different heights", P.LOW,
            "Press both weights up together", "wrists"),
        "asymmetric_press": IssueSpec(
            "Your arms are extending unevenly", P.LOW,
            "Lock out both arms at the same time", "arms"),
    }

    def _reset_tracking(self) -> None:
        self._ref_torso_len: Optional[float] = None

    def _torso(self, frame: PoseFrame):
        shoulders = np.mean([self.point(frame, s, "shoulder").xy() for s in SIDES], axis=0)
        hips = np.mean([self.point(frame, s, "hip").xy() for s in SIDES], axis=0)
        return shoulders, hips

    def measure(self, frame: PoseFrame, sides: List[str]) -> Dict[str, float]:
        angles: Dict[str, float] = {}
        for side in sides:
            elbow = self.point(frame, side, "elbow")
            wrist = self.point(frame, side, "wrist")
            angles[f"{side}_elbow"] = angle_at(self.point(frame, side, "shoulder"), elbow, wrist)
            angles[f"{side}_forearm_tilt"] = vertical_angle(wrist, elbow)
        angles["elbow"] = float(np.mean([angles[f"{s}_elbow"] for s in sides]))
        shoulders, hips = self._torso(frame)
        angles["torso_tilt"] = vertical_angle(shoulders, hips)
        return angles

    def on_rest_frame(self, frame: PoseFrame, sides: List[str]) -> None:
        shoulders, hips = self._torso(frame)
        self._ref_torso_len = distance(shoulders, hips)

    def evaluate(self, frame: PoseFrame, sides: List[str], angles: Dict[str, float],
                 card: Scorecard) -> None:
        t = self.thresholds
        w = t.weights

        # 1. Lockout
        if self.is_returning:
            limit = t.target_top_angle - t.range_tolerance
            top = self.rep_extreme
            if top < limit:
                card.apply(max(50.0, 100.0 - (limit - top)), w.range_of_motion,
                           self.issue("incomplete_press", current=top, target=t.target_top_angle))

        # 2. Back lean: sideways tilt, or torso foreshortening when leaning back.
        tilt = angles["torso_tilt"]
        ratio = None
        if self.in_rep and self._ref_torso_len:
            shoulders, hips = self._torso(frame)
            ratio = distance(shoulders, hips) / self._ref_torso_len
        if tilt > t.max_torso_tilt:
            card.apply(max(40.0, 100.0 - (tilt - t.max_torso_tilt) * 3), w.back,
                       self.issue("back_lean", current=tilt, target=t.max_torso_tilt))
        elif ratio is not None and ratio < t.min_torso_ratio:
            card.apply(max(40.0, 100.0 - (t.min_torso_ratio - ratio) * 400), w.back,
                       self.issue("back_lean", current=ratio, target=1.0))

        if not self.in_rep:
            return

        # 3. Forearm path
        for side in sides:
            fore = angles[f"{side}_forearm_tilt"]
            if fore > t.max_forearm_tilt:
                card.apply(max(60.0, 100.0 - (fore - t.max_forearm_tilt) * 2), w.forearm_path,
                           self.issue("press_path_deviation", side=side, current=fore,
                                      target=t.max_forearm_tilt))

        # 4. Wrist height
        gap = abs(self.point(frame, "left", "wrist").y - self.point(frame, "right", "wrist").y)
        if gap > t.wrist_height_threshold:
            card.apply(max(60.0, 100.0 - (gap - t.wrist_height_threshold) * 500), w.wrist_height,
                       self.issue("uneven_height", current=gap, target=t.wrist_height_threshold))

        # 5. Symmetry
        sym = symmetry(angles["left_elbow"], angles["right_elbow"])
        if sym < t.symmetry_threshold:
            card.apply(max(60.0, 100.0 - (t.symmetry_threshold - sym) * 100), w.symmetry,
                       self.issue("asymmetric_press", current=sym, target=t.symmetry_threshold))
