"""
Side (lateral) raise form analyzer (front view).

The drive angle is the arm abduction angle at the shoulder (hip-shoulder-elbow),
growing as the arms rise.
"""

from typing import Dict, List, Optional

import numpy as np

from ..pose.geometry import angle_at, midpoint, symmetry
from ..pose.landmarks import PoseFrame
from .base import SIDES, BaseFormAnalyzer, IssueSpec, Scorecard
from .models import ExerciseType, FeedbackPriority as P, RepPhase


class SideRaiseAnalyzer(BaseFormAnalyzer):
    exercise_type = ExerciseType.SIDE_RAISE
    REST_PHASE = RepPhase.BOTTOM
    DIRECTION = 1
    DRIVE_ANGLE = "raise"
    SIDE_JOINTS = ("shoulder", "elbow", "wrist", "hip")
    BILATERAL = True

    ISSUES = {
        "insufficient_raise": IssueSpec(
            "Raise your arms higher", P.MEDIUM,
            "Lift until your arms are level with your shoulders", "shoulders"),
        "excessive_raise": IssueSpec(
            "You are raising your arms too high", P.HIGH,
            "Stop at shoulder height to protect your shoulders", "shoulders"),
        "elbow_too_bent": IssueSpec(
            "Your elbows are bending too much", P.MEDIUM,
            "Keep a slight, fixed bend in your elbows", "elbows"),
        "body_sway": IssueSpec(
            "Your body is swaying", P.HIGH,
            "Stand tall and brace your core; lower the weight if needed", "torso"),
        "shoulder_shrug": IssueSpec(
            "Your {side} shoulder is shrugging up", P.MEDIUM,
            "Keep your shoulders down and away from your ears", "{side} shoulder"),
        "asymmetric_raise": IssueSpec(
            "Your arms are rising unevenly", P.LOW,
            "Lift both arms to the same height", "arms"),
    }

    def _reset_tracking(self) -> None:
        self._ref_center_x: Optional[float] = None
        self._ref_shoulder_y: Dict[str, float] = {}

    def measure(self, frame: PoseFrame, sides: List[str]) -> Dict[str, float]:
        angles: Dict[str, float] = {}
        for side in sides:
            shoulder = self.point(frame, side, "shoulder")
            elbow = self.point(frame, side, "elbow")
            angles[f"{side}_raise"] = angle_at(self.point(frame, side, "hip"), shoulder, elbow)
            angles[f"{side}_elbow"] = angle_at(shoulder, elbow, self.point(frame, side, "wrist"))
        angles["raise"] = float(np.mean([angles[f"{s}_raise"] for s in sides]))
        return angles

    def _shoulder_center_x(self, frame: PoseFrame) -> float:
        return midpoint(self.point(frame, "left", "shoulder"),
                        self.point(frame, "right", "shoulder"))[0]

    def on_rest_frame(self, frame: PoseFrame, sides: List[str]) -> None:
        self._ref_center_x = self._shoulder_center_x(frame)
        for side in sides:
            self._ref_shoulder_y[side] = self.point(frame, side, "shoulder").y

    def evaluate(self, frame: PoseFrame, sides: List[str], angles: Dict[str, float],
                 card: Scorecard) -> None:
        t = self.thresholds
        w = t.weights
        raise_angle = angles["raise"]

        # 1. Height
        if self.in_rep and raise_angle > t.max_raise_angle:
            card.apply(max(50.0, 100.0 - (raise_angle - t.max_raise_angle) * 2), w.raise_height,
                       self.issue("excessive_raise", current=raise_angle,
                                  target=t.target_raise_angle))
        elif self.is_returning and self.rep_extreme < t.min_raise_angle:
            peak = self.rep_extreme
            card.apply(max(50.0, 100.0 - (t.target_raise_angle - peak)), w.raise_height,
                       self.issue("insufficient_raise", current=peak,
                                  target=t.target_raise_angle))

        if not self.in_rep:
            return

        # 2. Elbow bend
        bend = min(angles[f"{s}_elbow"] for s in sides)
        if bend < t.min_elbow_angle:
            card.apply(max(60.0, 100.0 - (t.min_elbow_angle - bend)), w.elbow_bend,
                       self.issue("elbow_too_bent", current=bend, target=t.min_elbow_angle))

        # 3. Body sway
        if self._ref_center_x is not None:
            sway = abs(self._shoulder_center_x(frame) - self._ref_center_x)
            if sway > t.body_sway_threshold:
                card.apply(max(50.0, 100.0 - (sway - t.body_sway_threshold) * 1000), w.body_sway,
                           self.issue("body_sway", current=sway, target=t.body_sway_threshold))

        # 4. Shrug
        for side in SIDES:
            ref_y = self._ref_shoulder_y.get(side)
            if ref_y is None:
                continue
            lift = ref_y - self.point(frame, side, "shoulder").y
            if lift > t.shoulder_shrug_threshold:
                card.apply(max(60.0, 100.0 - (lift - t.shoulder_shrug_threshold) * 1000),
                           w.shoulder_shrug,
                           self.issue("shoulder_shrug", side=side, current=lift,
                                      target=t.shoulder_shrug_threshold))

        # 5. Symmetry
        sym = symmetry(angles["left_raise"], angles["right_raise"])
        if sym < t.symmetry_threshold:
            card.apply(max(60.0, 100.0 - (t.symmetry_threshold - sym) * 100), w.symmetry,
                       self.issue("asymmetric_raise", current=sym, target=t.symmetry_threshold))
