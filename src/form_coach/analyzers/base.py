"""
Common machinery for the exercise form analyzers.

Every analyzer is driven by one "drive" joint angle (knee for the squat,
elbow for the curl, ...).  The base class owns the rep cycle built on that
angle and the per-rep score bookkeeping; subclasses only measure angles and
score a frame.

Rep cycle (in drive-angle terms, direction-agnostic)::

    REST --past start--> OUTBOUND --past turn--> FAR
      ^                     |                     |
      |                     +--reversed by margin-+--> RETURN
      +-------------------back inside finish-------------+

``OUTBOUND`` landing back inside ``finish`` is an aborted dip and counts
nothing; a rep has to turn around outside ``finish`` first.  ``RETURN`` moving outward again by the margin goes
back to ``OUTBOUND`` within the same rep.
"""

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from ..config import MAX_REP_DURATION_MS, MIN_CONFIDENCE, MIN_REP_DURATION_MS
from ..pose.geometry import is_valid_angle
from ..pose.landmarks import Landmark, LandmarkType, PoseFrame
from .models import (
    ExerciseType,
    FeedbackPriority,
    FormIssue,
    FrameResult,
    RepPhase,
    RepSummary,
    dedupe_issues,
)
from .thresholds import load_thresholds

logger = logging.getLogger(__name__)

SIDES: Tuple[str, str] = ("left", "right")


def side_landmark(side: str, joint: str) -> LandmarkType:
    """``side_landmark("left", "knee") -> LandmarkType.LEFT_KNEE``."""
    return LandmarkType[f"{side}_{joint}".upper()]


class IssueSpec(NamedTuple):
    message: str
    priority: FeedbackPriority
    suggestion: str
    body_part: str


class Scorecard:
    """Accumulates weighted penalties and issues for one frame."""

    def __init__(self):
        self.score = 100.0
        self.issues: List[FormIssue] = []

    def apply(self, sub_score: float, weight: float, issue: Optional[FormIssue] = None) -> None:
        """Subtract ``(100 - sub_score) * weight`` and record *issue* if any."""
        self.score -= (100.0 - sub_score) * weight
        if issue is not None:
            self.issues.append(issue)


class _Cycle(str, Enum):
    REST = "rest"
    OUTBOUND = "outbound"
    FAR = "far"
    RETURN = "return"


class _Event(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    ABORTED = "aborted"


class BaseFormAnalyzer(ABC):
    """Base class for per-exercise analyzers.

    Subclasses set the class attributes below and implement ``measure`` and
    ``evaluate``.

    Attributes:
        exercise_type: Exercise this analyzer handles.
        REST_PHASE: ``RepPhase.TOP`` or ``RepPhase.BOTTOM``; the phase the
            lifter is in between reps and the initial phase.
        DIRECTION: -1 if the drive angle decreases during the outbound half
            of the rep, +1 if it increases.
        DRIVE_ANGLE: Key of the drive angle in the measured angle dict.
        SIDE_JOINTS: Joints needed on a side for that side to be usable.
        BILATERAL: Front-view exercise; both sides must be usable.  Side-view
            exercises only need the side facing the camera.
        ISSUES: Issue catalog keyed by base issue type.
    """

    exercise_type: ExerciseType
    REST_PHASE: RepPhase = RepPhase.TOP
    DIRECTION: int = -1
    DRIVE_ANGLE: str = ""
    SIDE_JOINTS: Sequence[str] = ()
    BILATERAL: bool = True
    ISSUES: Dict[str, IssueSpec] = {}

    def __init__(
        self,
        thresholds=None,
        min_confidence: float = MIN_CONFIDENCE,
        min_rep_duration_ms: int = MIN_REP_DURATION_MS,
        max_rep_duration_ms: int = MAX_REP_DURATION_MS,
    ):
        self.thresholds = thresholds if thresholds is not None else load_thresholds(self.exercise_type)
        self.min_confidence = min_confidence
        self.min_rep_duration_ms = min_rep_duration_ms
        self.max_rep_duration_ms = max_rep_duration_ms
        self._check_phase_thresholds()
        self.reset()

    def _check_phase_thresholds(self) -> None:
        p = self.thresholds.phases
        d = self.DIRECTION
        # Outbound order: finish, start, turn.
        if not ((p.start - p.finish) * d > 0 and (p.turn - p.start) * d > 0):
            raise ValueError(
                f"{type(self).__name__}: phase thresholds must run finish -> start -> turn "
                f"in the {'decreasing' if d < 0 else 'increasing'} direction, got "
                f"finish={p.finish}, start={p.start}, turn={p.turn}."
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def rep_count(self) -> int:
        return self._rep_count

    @property
    def phase(self) -> RepPhase:
        return self._phase_for(self._cycle)

    @property
    def rep_summaries(self) -> List[RepSummary]:
        return list(self._rep_summaries)

    @property
    def last_score(self) -> float:
        return self._last_score

    @property
    def required_landmarks(self) -> List[LandmarkType]:
        return [side_landmark(s, j) for s in SIDES for j in self.SIDE_JOINTS]

    def reset(self) -> None:
        """Return to the initial phase with zero reps and empty buffers."""
        self._cycle = _Cycle.REST
        self._rep_count = 0
        self._last_score = 100.0
        self._rep_summaries: List[RepSummary] = []
        self._last_frame_ms: Optional[int] = None
        self._paused = False
        self._skip_gap = False
        self._clear_rep()
        self._reset_tracking()

    def pause(self) -> None:
        """The session is paused; frames stop arriving until ``resume()``."""
        self._paused = True

    def resume(self) -> None:
        """Continue the same rep after a pause.

        The gap up to the next valid frame is not counted towards the rep's
        duration, and rate filters restart from that frame.
        """
        if not self._paused:
            return
        self._paused = False
        self._skip_gap = True
        self._on_resume()

    def analyze(self, frame: PoseFrame) -> FrameResult:
        """Analyze one frame: advance the rep cycle and score the form.

        Frames without a pose, with required landmarks below the confidence
        threshold, or with unusable angles produce a neutral result and leave
        all state untouched.
        """
        if not frame.is_pose_detected:
            return self._neutral(frame, low_confidence=True)

        sides = self.usable_sides(frame)
        if not sides:
            return self._neutral(frame, low_confidence=True)

        angles = self.measure(frame, sides)
        drive = angles.get(self.DRIVE_ANGLE)
        if drive is None or not all(is_valid_angle(v) for v in angles.values()):
            logger.debug("%s: invalid angles at %d ms, treating as missing data",
                         self.exercise_type.value, frame.timestamp_ms)
            return self._neutral(frame)

        if self._skip_gap:
            self._skip_gap = False
            if self.in_rep and self._last_frame_ms is not None:
                self._rep_paused_ms += max(0, frame.timestamp_ms - self._last_frame_ms)
        self._last_frame_ms = frame.timestamp_ms

        event = self._advance(drive, frame.timestamp_ms)

        card = Scorecard()
        self.evaluate(frame, sides, angles, card)
        score = card.score
        if not math.isfinite(score):
            logger.warning("%s: non-finite frame score, keeping previous score",
                           self.exercise_type.value)
            score = self._last_score
        score = min(100.0, max(0.0, score))
        self._last_score = score

        if self._cycle == _Cycle.REST:
            self.on_rest_frame(frame, sides)

        completed_rep = None
        if event == _Event.COMPLETED:
            self._rep_scores.append(score)
            self._rep_issues.extend(card.issues)
            completed_rep = self._finalize_rep(frame.timestamp_ms)
        elif self._cycle != _Cycle.REST:
            self._rep_scores.append(score)
            self._rep_issues.extend(card.issues)

        return FrameResult(
            timestamp_ms=frame.timestamp_ms,
            score=score,
            issues=card.issues,
            phase=self.phase,
            rep_count=self._rep_count,
            joint_angles=angles,
            rep_completed=completed_rep is not None,
            completed_rep=completed_rep,
        )

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def measure(self, frame: PoseFrame, sides: List[str]) -> Dict[str, float]:
        """Joint angles for this frame; must include ``DRIVE_ANGLE``."""

    @abstractmethod
    def evaluate(self, frame: PoseFrame, sides: List[str], angles: Dict[str, float],
                 card: Scorecard) -> None:
        """Apply this exercise's form checks to *card*."""

    def on_rest_frame(self, frame: PoseFrame, sides: List[str]) -> None:
        """Called for every valid frame spent in the rest phase."""

    def _reset_tracking(self) -> None:
        """Clear subclass reference positions and filters."""

    def _on_resume(self) -> None:
        """Restart time-based filters after a pause."""

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def usable_sides(self, frame: PoseFrame) -> List[str]:
        """Sides whose ``SIDE_JOINTS`` are all present, finite and confident.

        Returns an empty list when the frame cannot be analyzed.
        """
        usable = []
        for side in SIDES:
            ok = True
            for joint in self.SIDE_JOINTS:
                lm = frame.get(side_landmark(side, joint))
                if lm is None or not lm.is_finite or not lm.meets_minimum(self.min_confidence):
                    ok = False
                    break
            if ok:
                usable.append(side)
        if self.BILATERAL and len(usable) < len(SIDES):
            return []
        return usable

    def point(self, frame: PoseFrame, side: str, joint: str) -> Landmark:
        return frame.landmarks[side_landmark(side, joint)]

    def optional_point(self, frame: PoseFrame, landmark_type: LandmarkType) -> Optional[Landmark]:
        """Landmark outside ``SIDE_JOINTS``, or ``None`` if not usable."""
        lm = frame.get(landmark_type)
        if lm is None or not lm.is_finite or not lm.meets_minimum(self.min_confidence):
            return None
        return lm

    def issue(self, key: str, side: Optional[str] = None,
              current: Optional[float] = None, target: Optional[float] = None) -> FormIssue:
        entry = self.ISSUES[key]
        return FormIssue(
            issue_type=f"{key}_{side}" if side else key,
            message=entry.message.format(side=side or ""),
            priority=entry.priority,
            suggestion=entry.suggestion,
            body_part=entry.body_part.format(side=side or "").strip(),
            current_value=current,
            target_value=target,
        )

    @property
    def in_rep(self) -> bool:
        return self._cycle != _Cycle.REST

    @property
    def is_returning(self) -> bool:
        return self._cycle == _Cycle.RETURN

    @property
    def at_far_phase(self) -> bool:
        return self._cycle == _Cycle.FAR

    @property
    def rep_extreme(self) -> Optional[float]:
        """Most outbound drive angle reached so far in the current rep."""
        return self._rep_extreme

    # ------------------------------------------------------------------
    # Rep cycle
    # ------------------------------------------------------------------

    def _phase_for(self, cycle: _Cycle) -> RepPhase:
        if self.REST_PHASE == RepPhase.TOP:
            mapping = {
                _Cycle.REST: RepPhase.TOP,
                _Cycle.OUTBOUND: RepPhase.DESCENDING,
                _Cycle.FAR: RepPhase.BOTTOM,
                _Cycle.RETURN: RepPhase.ASCENDING,
            }
        else:
            mapping = {
                _Cycle.REST: RepPhase.BOTTOM,
                _Cycle.OUTBOUND: RepPhase.ASCENDING,
                _Cycle.FAR: RepPhase.TOP,
                _Cycle.RETURN: RepPhase.DESCENDING,
            }
        return mapping[cycle]

    def _outward(self, angle: float, reference: float) -> float:
        """How far *angle* lies beyond *reference* in the outbound direction."""
        return (angle - reference) * self.DIRECTION

    def _clear_rep(self) -> None:
        self._rep_scores: List[float] = []
        self._rep_issues: List[FormIssue] = []
        self._rep_start_ms: Optional[int] = None
        self._rep_paused_ms = 0
        self._leg_extreme: Optional[float] = None
        self._rebound: Optional[float] = None
        self._rep_extreme: Optional[float] = None
        self._rep_min: Optional[float] = None
        self._rep_max: Optional[float] = None

    def _transition(self, cycle: _Cycle, angle: float) -> None:
        if cycle != self._cycle:
            logger.debug("%s: %s -> %s at %.1f deg", self.exercise_type.value,
                         self._phase_for(self._cycle).value, self._phase_for(cycle).value, angle)
        self._cycle = cycle

    def _advance(self, angle: float, timestamp_ms: int) -> Optional[_Event]:
        p = self.thresholds.phases
        event = None

        if self._cycle == _Cycle.REST:
            if self._outward(angle, p.start) <= 0:
                return None
            self._clear_rep()
            self._rep_start_ms = timestamp_ms
            self._leg_extreme = angle
            self._transition(_Cycle.OUTBOUND, angle)
            event = _Event.STARTED

        self._rep_min = angle if self._rep_min is None else min(self._rep_min, angle)
        self._rep_max = angle if self._rep_max is None else max(self._rep_max, angle)
        if self._rep_extreme is None or self._outward(angle, self._rep_extreme) > 0:
            self._rep_extreme = angle

        if self._cycle in (_Cycle.OUTBOUND, _Cycle.FAR):
            if self._outward(angle, self._leg_extreme) > 0:
                self._leg_extreme = angle
            if self._cycle == _Cycle.OUTBOUND and self._outward(angle, p.turn) >= 0:
                self._transition(_Cycle.FAR, angle)

            if self._cycle == _Cycle.OUTBOUND and self._outward(angle, p.finish) <= 0:
                logger.debug("%s: aborted rep at %.1f deg", self.exercise_type.value, angle)
                self._transition(_Cycle.REST, angle)
                self._clear_rep()
                return _Event.ABORTED
            if -self._outward(angle, self._leg_extreme) >= p.reversal_margin:
                self._rebound = angle
                self._transition(_Cycle.RETURN, angle)

        if self._cycle == _Cycle.RETURN:
            if self._outward(angle, self._rebound) < 0:
                self._rebound = angle
            if self._outward(angle, p.finish) <= 0:
                self._transition(_Cycle.REST, angle)
                return _Event.COMPLETED
            if self._outward(angle, self._rebound) >= p.reversal_margin:
                self._leg_extreme = angle
                next_cycle = _Cycle.FAR if self._outward(angle, p.turn) >= 0 else _Cycle.OUTBOUND
                self._transition(next_cycle, angle)

        return event

    def _finalize_rep(self, end_ms: int) -> Optional[RepSummary]:
        start_ms = self._rep_start_ms if self._rep_start_ms is not None else end_ms
        duration = end_ms - start_ms - self._rep_paused_ms
        if duration < self.min_rep_duration_ms or duration > self.max_rep_duration_ms:
            logger.warning(
                "%s: discarding rep lasting %d ms (allowed %d-%d ms)",
                self.exercise_type.value, duration,
                self.min_rep_duration_ms, self.max_rep_duration_ms,
            )
            self._clear_rep()
            return None

        scores = self._rep_scores or [self._last_score]
        if self.thresholds.rep_score_mode == "min":
            rep_score = min(scores)
        else:
            rep_score = sum(scores) / len(scores)

        self._rep_count += 1
        summary = RepSummary(
            rep_number=self._rep_count,
            score=min(100.0, max(0.0, rep_score)),
            issues=dedupe_issues(self._rep_issues),
            start_ms=start_ms,
            end_ms=end_ms,
            paused_ms=self._rep_paused_ms,
            min_angle=self._rep_min,
            max_angle=self._rep_max,
        )
        self._rep_summaries.append(summary)
        logger.debug("%s: rep %d complete, score=%.1f, %d issue(s)", self.exercise_type.value,
                     summary.rep_number, summary.score, len(summary.issues))
        self._clear_rep()
        return summary

    def _neutral(self, frame: PoseFrame, low_confidence: bool = False) -> FrameResult:
        return FrameResult(
            timestamp_ms=frame.timestamp_ms,
            score=self._last_score,
            issues=[],
            phase=self.phase,
            rep_count=self._rep_count,
            neutral=True,
            low_confidence=low_confidence,
        )
