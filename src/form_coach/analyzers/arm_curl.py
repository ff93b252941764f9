"""
Arm curl form analyzer (front view).

The drive angle is the mean elbow angle (shoulder-elbow-wrist); it shrinks as
the weight comes up.  Elbow and shoulder positions are compared against the
last rest-phase frame to catch swinging and shrugging.
"""

from typing import Dict, List, Optional

import numpy as np

from ..pose.geometry import VelocityTracker, angle_at, distance, symmetry
from ..pose.landmarks import PoseFrame
from .base import SIDES, BaseFormAnalyzer, IssueSpec, Scorecard
from .models import ExerciseType, FeedbackPriority as P, RepPhase


class ArmCurlAnalyzer(BaseFormAnalyzer):
    exercise_type = ExerciseType.ARM_CURL
    REST_PHASE = RepPhase.BOTTOM
    DIRECTION = -1
    DRIVE_ANGLE = "elbow"
    SIDE_JOINTS = ("shoulder", "elbow", "wrist", "hip")
    BILATERAL = True

    ISSUES = {
        "incomplete_curl": IssueSpec(
            "Curl the weight higher", P.MEDIUM,
            "Bring your hands close to your shoulders at the top", "elbow"),
        "elbow_swing": IssueSpec(
            "Your {side} elbow is drifting", P.HIGH,
            "Pin your elbows to your sides", "{side} elbow"),
        "shoulder_shrug": IssueSpec(
            "Your {side} shoulder is lifting", P.MEDIUM,
            "Relax your shoulders and keep them down", "{side} shoulder"),
        "using_momentum": IssueSpec(
            "You are swinging the weight", P.HIGH,
            "Slow down and control the weight on the way up and down", "arms"),
        "asymmetric_curl": IssueSpec(
            "Your arms are moving unevenly", P.LOW,
            "Curl both arms at the same pace", "arms"),
    }

    def _reset_tracking(self) -> None:
        self._ref_elbow: Dict[str, np.ndarray] = {}
        self._ref_shoulder_y: Dict[str, float] = {}
        self._velocity = {side: VelocityTracker() for side in SIDES}
        self._last_velocity: Dict[str, Optional[float]] = {side: None for side in SIDES}

    def _on_resume(self) -> None:
        # Forget the last sample from before the pause.
        for side in SIDES:
            self._velocity[side].reset()
            self._last_velocity[side] = None

    def measure(self, frame: PoseFrame, sides: List[str]) -> Dict[str, float]:
        angles: Dict[str, float] = {}
        for side in sides:
            angles[f"{side}_elbow"] = angle_at(self.point(frame, side, "shoulder"),
                                               self.point(frame, side, "elbow"),
                                               self.point(frame, side, "wrist"))
        angles["elbow"] = float(np.mean([angles[f"{s}_elbow"] for s in sides]))
        return angles

    def on_rest_frame(self, frame: PoseFrame, sides: List[str]) -> None:
        for side in sides:
            self._ref_elbow[side] = self.point(frame, side, "elbow").xy()
            self._ref_shoulder_y[side] = self.point(frame, side, "shoulder").y

    def evaluate(self, frame: PoseFrame, sides: List[str], angles: Dict[str, float],
                 card: Scorecard) -> None:
        t = self.thresholds
        w = t.weights

        for side in sides:
            self._last_velocity[side] = self._velocity[side].update(
                angles[f"{side}_elbow"], frame.timestamp_ms)

        # 1. Range of motion: peak flexion, judged on the way down.
        if self.is_returning:
            limit = t.target_min_angle + t.range_tolerance
            peak = self.rep_extreme
            if peak > limit:
                card.apply(max(50.0, 100.0 - (peak - limit)), w.range_of_motion,
                           self.issue("incomplete_curl", current=peak, target=t.target_min_angle))

        if self.in_rep:
            for side in sides:
                # 2. Elbow swing
                ref = self._ref_elbow.get(side)
                if ref is not None:
                    drift = distance(self.point(frame, side, "elbow"), ref)
                    if drift > t.elbow_swing_threshold:
                        card.apply(max(50.0, 100.0 - (drift - t.elbow_swing_threshold) * 1000),
                                   w.elbow_swing,
                                   self.issue("elbow_swing", side=side, current=drift,
                                              target=t.elbow_swing_threshold))
                # 3. Shoulder shrug (y grows downward)
                ref_y = self._ref_shoulder_y.get(side)
                if ref_y is not None:
                    lift = ref_y - self.point(frame, side, "shoulder").y
                    if lift > t.shoulder_shrug_threshold:
                        card.apply(max(60.0, 100.0 - (lift - t.shoulder_shrug_threshold) * 1000),
                                   w.shoulder_shrug,
                                   self.issue("shoulder_shrug", side=side, current=lift,
                                              target=t.shoulder_shrug_threshold))

            # 4. Momentum
            speeds = [abs(v) for v in self._last_velocity.values() if v is not None]
            if speeds and max(speeds) > t.max_angular_velocity:
                speed = max(speeds)
                card.apply(max(50.0, 100.0 - (speed - t.max_angular_velocity) / 5), w.momentum,
                           self.issue("using_momentum", current=speed,
                                      target=t.max_angular_velocity))

        # 5. Symmetry
        sym = symmetry(angles["left_elbow"], angles["right_elbow"])
        if sym < t.symmetry_threshold:
            card.apply(max(60.0, 100.0 - (t.symmetry_threshold - sym) * 100), w.symmetry,
                       self.issue("asymmetric_curl", current=sym, target=t.symmetry_threshold))
