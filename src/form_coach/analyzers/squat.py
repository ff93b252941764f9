"""
Squat form analyzer (side view).

Checks:
  - Depth: knee angle at the bottom of the rep (target 90 deg)
  - Forward lean of the torso
  - Knee travel past the toes
  - Heel lift
  - Left/right knee symmetry (when both legs are visible)
"""

from typing import Dict, List

import numpy as np

from ..pose.geometry import angle_at, symmetry, vertical_angle
from ..pose.landmarks import PoseFrame
from .base import BaseFormAnalyzer, IssueSpec, Scorecard, side_landmark
from .models import ExerciseType, FeedbackPriority as P, RepPhase


class SquatAnalyzer(BaseFormAnalyzer):
    exercise_type = ExerciseType.SQUAT
    REST_PHASE = RepPhase.TOP
    DIRECTION = -1
    DRIVE_ANGLE = "knee"
    SIDE_JOINTS = ("shoulder", "hip", "knee", "ankle")
    BILATERAL = False

    ISSUES = {
        "insufficient_depth": IssueSpec(
            "Squat a little deeper", P.MEDIUM,
            "Lower your hips until your knees reach about 90 degrees", "knee"),
        "excessive_depth": IssueSpec(
            "You are squatting too deep", P.HIGH,
            "Stop when your knees are around 90 degrees", "knee"),
        "excessive_forward_lean": IssueSpec(
            "Your upper body is leaning too far forward", P.CRITICAL,
            "Keep your chest up and your back straight", "back"),
        "too_upright": IssueSpec(
            "Your torso is too upright", P.LOW,
            "Hinge slightly at the hips as you sit back", "back"),
        "knee_over_toe": IssueSpec(
            "Your {side} knee is travelling past your toes", P.HIGH,
            "Push your hips back as if sitting in a chair", "{side} knee"),
        "heel_lift": IssueSpec(
            "Your {side} heel is lifting", P.MEDIUM,
            "Keep your whole foot on the floor", "{side} heel"),
        "asymmetric_squat": IssueSpec(
            "Your weight is uneven between legs", P.LOW,
            "Distribute your weight evenly over both feet", "legs"),
    }

    # ------------------------------------------------------------------

    def measure(self, frame: PoseFrame, sides: List[str]) -> Dict[str, float]:
        angles: Dict[str, float] = {}
        shoulders, hips = [], []
        for side in sides:
            shoulder = self.point(frame, side, "shoulder")
            hip = self.point(frame, side, "hip")
            knee = self.point(frame, side, "knee")
            ankle = self.point(frame, side, "ankle")
            angles[f"{side}_knee"] = angle_at(hip, knee, ankle)
            angles[f"{side}_hip"] = angle_at(shoulder, hip, knee)
            shoulders.append(shoulder.xy())
            hips.append(hip.xy())

        angles["knee"] = float(np.mean([angles[f"{s}_knee"] for s in sides]))
        angles["torso_lean"] = vertical_angle(np.mean(shoulders, axis=0), np.mean(hips, axis=0))
        return angles

    def evaluate(self, frame: PoseFrame, sides: List[str], angles: Dict[str, float],
                 card: Scorecard) -> None:
        t = self.thresholds
        w = t.weights

        # 1. Depth: judged on the deepest point once the lifter turns around.
        knee = angles["knee"]
        depth_angle = None
        if self.is_returning:
            depth_angle = self.rep_extreme
        elif self.in_rep and knee < t.min_knee_angle:
            depth_angle = knee
        if depth_angle is not None:
            sub, issue = self._score_depth(depth_angle)
            card.apply(sub, w.depth, issue)

        # 2. Symmetry
        if len(sides) == 2:
            sym = symmetry(angles["left_knee"], angles["right_knee"])
            if sym < t.symmetry_threshold:
                deduction = (t.symmetry_threshold - sym) * 100
                card.apply(max(60.0, 100.0 - deduction), w.symmetry,
                           self.issue("asymmetric_squat", current=sym, target=t.symmetry_threshold))

        # 3. Back angle
        lean = angles["torso_lean"]
        if lean > t.max_forward_lean:
            card.apply(max(40.0, 100.0 - (lean - t.max_forward_lean) * 2), w.back,
                       self.issue("excessive_forward_lean", current=lean, target=t.max_forward_lean))
        elif self.at_far_phase and lean < t.min_forward_lean:
            card.apply(90.0, w.back,
                       self.issue("too_upright", current=lean, target=t.min_forward_lean))

        if not self.in_rep:
            return

        # 4. Feet: knee over toe and heel lift
        for side in sides:
            heel = self.optional_point(frame, side_landmark(side, "heel"))
            toe = self.optional_point(frame, side_landmark(side, "foot_index"))
            if heel is None or toe is None:
                continue
            facing = np.sign(toe.x - heel.x)
            if facing != 0:
                knee_pt = self.point(frame, side, "knee")
                forward = (knee_pt.x - toe.x) * facing
                if forward > t.knee_over_toe_threshold:
                    card.apply(max(50.0, 100.0 - (forward - t.knee_over_toe_threshold) * 1000),
                               w.knee_over_toe,
                               self.issue("knee_over_toe", side=side, current=forward,
                                          target=t.knee_over_toe_threshold))
            rise = toe.y - heel.y
            if rise > t.heel_lift_threshold:
                card.apply(max(60.0, 100.0 - (rise - t.heel_lift_threshold) * 1000),
                           w.heel_lift,
                           self.issue("heel_lift", side=side, current=rise,
                                      target=t.heel_lift_threshold))

    def _score_depth(self, angle: float):
        t = self.thresholds
        offset = abs(angle - t.target_knee_angle)
        if offset <= t.perfect_band:
            return 100.0, None
        if offset <= t.good_band:
            return 90.0, None
        if angle > t.target_knee_angle + t.knee_angle_tolerance:
            deduction = (angle - t.target_knee_angle - t.knee_angle_tolerance) / 2
            return (max(50.0, 100.0 - deduction),
                    self.issue("insufficient_depth", current=angle, target=t.target_knee_angle))
        if angle < t.min_knee_angle:
            deduction = (t.min_knee_angle - angle) / 2
            return (max(60.0, 100.0 - deduction),
                    self.issue("excessive_depth", current=angle, target=t.target_knee_angle))
        return 85.0, None
