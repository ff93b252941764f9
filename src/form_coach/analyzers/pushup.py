"""
Push-up form analyzer (side view).

Checks depth at the bottom of the rep, hip sag / pike relative to the
shoulder-ankle line, head position and elbow symmetry.
"""

from typing import Dict, List, Optional

import numpy as np

from ..pose.geometry import angle_at, distance, signed_distance_to_line, symmetry
from ..pose.landmarks import LandmarkType, PoseFrame
from .base import BaseFormAnalyzer, IssueSpec, Scorecard
from .models import ExerciseType, FeedbackPriority as P, RepPhase


def _offset_from_body_line(point, shoulder, ankle) -> Optional[float]:
    """Perpendicular offset of *point* below the shoulder-ankle line, per body length.

    Positive means below the line (image y grows downward).  ``None`` when the
    body is not roughly horizontal.
    """
    body_len = distance(shoulder, ankle)
    if abs(ankle.x - shoulder.x) < 1e-6 or body_len < 1e-6:
        return None
    # Run the line left to right so the positive side is below it.
    start, end = (shoulder, ankle) if shoulder.x < ankle.x else (ankle, shoulder)
    return signed_distance_to_line(point, start, end) / body_len


class PushUpAnalyzer(BaseFormAnalyzer):
    exercise_type = ExerciseType.PUSH_UP
    REST_PHASE = RepPhase.TOP
    DIRECTION = -1
    DRIVE_ANGLE = "elbow"
    SIDE_JOINTS = ("shoulder", "elbow", "wrist", "hip", "ankle")
    BILATERAL = False

    ISSUES = {
        "insufficient_depth": IssueSpec(
            "Lower your chest further", P.MEDIUM,
            "Bend your elbows to about 90 degrees", "elbow"),
        "hip_sag": IssueSpec(
            "Your hips are sagging", P.CRITICAL,
            "Brace your core and keep a straight line from head to heels", "hips"),
        "hip_pike": IssueSpec(
            "Your hips are too high", P.MEDIUM,
            "Lower your hips in line with your shoulders and ankles", "hips"),
        "head_drop": IssueSpec(
            "Your head is dropping", P.LOW,
            "Keep your neck neutral and look slightly ahead", "neck"),
        "asymmetric_pushup": IssueSpec(
            "Your arms are bending unevenly", P.LOW,
            "Push evenly through both hands", "arms"),
    }

    def measure(self, frame: PoseFrame, sides: List[str]) -> Dict[str, float]:
        angles: Dict[str, float] = {}
        for side in sides:
            shoulder = self.point(frame, side, "shoulder")
            elbow = self.point(frame, side, "elbow")
            wrist = self.point(frame, side, "wrist")
            hip = self.point(frame, side, "hip")
            ankle = self.point(frame, side, "ankle")
            angles[f"{side}_elbow"] = angle_at(shoulder, elbow, wrist)
            angles[f"{side}_body_line"] = angle_at(shoulder, hip, ankle)
        angles["elbow"] = float(np.mean([angles[f"{s}_elbow"] for s in sides]))
        return angles

    def evaluate(self, frame: PoseFrame, sides: List[str], angles: Dict[str, float],
                 card: Scorecard) -> None:
        t = self.thresholds
        w = t.weights

        # 1. Depth
        if self.is_returning:
            limit = t.target_bottom_angle + t.depth_tolerance
            deepest = self.rep_extreme
            if deepest > limit:
                card.apply(max(50.0, 100.0 - (deepest - limit)), w.depth,
                           self.issue("insufficient_depth", current=deepest,
                                      target=t.target_bottom_angle))

        # 2. Hips relative to the body line
        offsets = []
        for side in sides:
            dev = _offset_from_body_line(self.point(frame, side, "hip"),
                                         self.point(frame, side, "shoulder"),
                                         self.point(frame, side, "ankle"))
            if dev is not None:
                offsets.append(dev)
        if offsets:
            dev = float(np.mean(offsets))
            if dev > t.hip_sag_threshold:
                card.apply(max(30.0, 100.0 - (dev - t.hip_sag_threshold) * 500), w.hips,
                           self.issue("hip_sag", current=dev, target=0.0))
            elif -dev > t.hip_pike_threshold:
                card.apply(max(50.0, 100.0 - (-dev - t.hip_pike_threshold) * 400), w.hips,
                           self.issue("hip_pike", current=dev, target=0.0))

        # 3. Head
        nose = self.optional_point(frame, LandmarkType.NOSE)
        if nose is not None:
            side = sides[0]
            drop = _offset_from_body_line(nose, self.point(frame, side, "shoulder"),
                                          self.point(frame, side, "ankle"))
            if drop is not None and drop > t.head_drop_threshold:
                card.apply(80.0, w.head, self.issue("head_drop", current=drop,
                                                    target=t.head_drop_threshold))

        # 4. Symmetry
        if len(sides) == 2:
            sym = symmetry(angles["left_elbow"], angles["right_elbow"])
            if sym < t.symmetry_threshold:
                card.apply(max(60.0, 100.0 - (t.symmetry_threshold - sym) * 100), w.symmetry,
                           self.issue("asymmetric_pushup", current=sym,
                                      target=t.symmetry_threshold))
