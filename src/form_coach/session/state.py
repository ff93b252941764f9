"""
Training session / set state machine.

Phases::

    idle -> setting_up -> countdown -> active <-> paused
                                         |
                                         v
                     completed <- rest -> active (next set)

``TrainingSession`` owns the mutable ``TrainingSessionState`` and is the only
code that changes it.  It is not thread-safe on its own; the session
controller serializes every call onto one lock.
"""

import logging
import time
from collections import Counter
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..analyzers.models import ExerciseType, FormIssue, FrameResult, RepSummary, dedupe_issues
from ..config import (
    COUNTDOWN_SECONDS,
    DEFAULT_REST_SECONDS,
    DEFAULT_TARGET_REPS,
    DEFAULT_TARGET_SETS,
)
from ..errors import InvalidSessionConfigError, SessionStateError

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    IDLE = "idle"
    SETTING_UP = "setting_up"
    COUNTDOWN = "countdown"
    ACTIVE = "active"
    PAUSED = "paused"
    REST = "rest"
    COMPLETED = "completed"
    ERRORED = "errored"


TERMINAL_PHASES = (SessionPhase.COMPLETED, SessionPhase.ERRORED)
PAUSABLE_PHASES = (SessionPhase.COUNTDOWN, SessionPhase.ACTIVE, SessionPhase.REST)


# ============================================================================
# Configuration
# ============================================================================

class SessionConfig(BaseModel):
    """User-supplied goal for one session; immutable once the session starts."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    exercise_type: ExerciseType
    target_reps: int = Field(default=DEFAULT_TARGET_REPS, ge=1, le=100)
    target_sets: int = Field(default=DEFAULT_TARGET_SETS, ge=1, le=20)
    rest_seconds: int = Field(default=DEFAULT_REST_SECONDS, ge=0, le=600)
    countdown_seconds: int = Field(default=COUNTDOWN_SECONDS, ge=0, le=30)

    @classmethod
    def create(cls, **values) -> "SessionConfig":
        """Validate user input into a config.

        Raises:
            InvalidSessionConfigError: With one message per rejected field.
        """
        try:
            return cls(**values)
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise InvalidSessionConfigError(
                "Invalid session configuration: " + "; ".join(errors), errors
            ) from exc


# ============================================================================
# Records
# ============================================================================

class SetupChecklistItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    checked: bool = False
    auto_detectable: bool = False


def default_checklist() -> List[SetupChecklistItem]:
    return [
        SetupChecklistItem(id="full_body", label="Is your whole body in frame?",
                           auto_detectable=True),
        SetupChecklistItem(id="brightness", label="Is the room bright enough?",
                           auto_detectable=True),
        SetupChecklistItem(id="background", label="Is the background uncluttered?"),
        SetupChecklistItem(id="distance", label="Are you 1.5-2.5 m from the camera?",
                           auto_detectable=True),
    ]


class SetData(BaseModel):
    """A finished set.  Immutable once appended to ``completed_sets``."""

    model_config = ConfigDict(frozen=True)

    set_number: int = Field(ge=1)
    reps: int = Field(ge=0)
    average_score: float = Field(ge=0.0, le=100.0)
    best_rep_score: Optional[float] = None
    worst_rep_score: Optional[float] = None
    duration_seconds: float = Field(ge=0.0)
    issues: List[FormIssue] = Field(default_factory=list)
    issue_counts: Dict[str, int] = Field(
        default_factory=dict, description="Issue type -> number of reps it occurred in"
    )
    rep_scores: List[float] = Field(default_factory=list)


class TrainingSessionState(BaseModel):
    phase: SessionPhase = SessionPhase.IDLE
    config: SessionConfig
    current_set: int = 0
    current_reps: int = 0
    current_score: float = 100.0
    current_issues: List[FormIssue] = Field(default_factory=list)
    top_issue: Optional[FormIssue] = None
    completed_sets: List[SetData] = Field(default_factory=list)
    setup_checklist: List[SetupChecklistItem] = Field(default_factory=list)
    countdown_remaining: float = 0.0
    rest_time_remaining: float = 0.0
    paused_from: Optional[SessionPhase] = None
    ended_early: bool = False
    error_message: Optional[str] = None

    @property
    def is_setup_complete(self) -> bool:
        return bool(self.setup_checklist) and all(item.checked for item in self.setup_checklist)

    @property
    def set_progress(self) -> float:
        return min(1.0, self.current_reps / self.config.target_reps)

    @property
    def total_progress(self) -> float:
        done = len(self.completed_sets) / self.config.target_sets
        in_progress = 0.0
        if self.phase in (SessionPhase.ACTIVE, SessionPhase.PAUSED):
            in_progress = self.set_progress / self.config.target_sets
        return min(1.0, done + in_progress)

    @property
    def total_reps(self) -> int:
        return sum(s.reps for s in self.completed_sets)


# ============================================================================
# State machine
# ============================================================================

class TrainingSession:
    """Set/rep bookkeeping and phase transitions for one session.

    Args:
        config: Validated session configuration.
        clock: Monotonic clock in seconds, used for set durations.
    """

    def __init__(self, config: SessionConfig, clock: Callable[[], float] = time.monotonic):
        self._state = TrainingSessionState(config=config)
        self._clock = clock
        self._reset_set_accumulators()

    @property
    def state(self) -> TrainingSessionState:
        """Deep copy of the current state, safe to hand to other threads."""
        return self._state.model_copy(deep=True)

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def config(self) -> SessionConfig:
        return self._state.config

    @property
    def completed_sets(self) -> List[SetData]:
        return list(self._state.completed_sets)

    # ------------------------------------------------------------------
    # Setup and countdown
    # ------------------------------------------------------------------

    def begin_setup(self) -> None:
        """Enter setting_up with a fresh checklist (also used for retries)."""
        self._require(SessionPhase.IDLE, SessionPhase.SETTING_UP, action="begin setup")
        self._state.setup_checklist = default_checklist()
        self._state.error_message = None
        self._set_phase(SessionPhase.SETTING_UP)

    def abort_setup(self, message: Optional[str] = None) -> None:
        """Return to idle after the pose source failed to start.

        Allowed until the first set has recorded anything, so a quick start
        that already skipped setup can still be rolled back.
        """
        self._require(SessionPhase.IDLE, SessionPhase.SETTING_UP, SessionPhase.COUNTDOWN,
                      SessionPhase.ACTIVE, action="abort setup")
        if self._state.completed_sets or self._state.current_reps:
            raise SessionStateError("Cannot abort setup after reps were recorded")
        self._state.setup_checklist = []
        self._state.current_set = 0
        self._state.countdown_remaining = 0.0
        self._reset_set_accumulators()
        self._state.error_message = message
        self._set_phase(SessionPhase.IDLE)

    def set_checklist_item(self, item_id: str, checked: bool = True) -> None:
        """Tick a checklist item; completing the list starts the countdown.

        Raises:
            KeyError: If *item_id* is not on the checklist.
        """
        self._require(SessionPhase.SETTING_UP, action="update the checklist")
        items = self._state.setup_checklist
        for i, item in enumerate(items):
            if item.id == item_id:
                if item.checked != checked:
                    items[i] = item.model_copy(update={"checked": checked})
                break
        else:
            raise KeyError(f"Unknown checklist item '{item_id}'")

        if self._state.is_setup_complete:
            self._start_countdown()

    def skip_setup(self) -> None:
        """Tick every checklist item at once."""
        self._require(SessionPhase.SETTING_UP, action="skip setup")
        self._state.setup_checklist = [
            item.model_copy(update={"checked": True}) for item in self._state.setup_checklist
        ]
        self._start_countdown()

    def skip_countdown(self) -> None:
        self._require(SessionPhase.COUNTDOWN, action="skip the countdown")
        self._start_set(1)

    def skip_rest(self) -> None:
        self._require(SessionPhase.REST, action="skip the rest")
        self._start_set(self._state.current_set + 1)

    def tick(self, seconds: float) -> bool:
        """Advance the countdown or rest timer.

        Paused and other phases ignore ticks.

        Returns:
            True if the tick caused a phase transition.
        """
        st = self._state
        if st.phase == SessionPhase.COUNTDOWN:
            st.countdown_remaining = max(0.0, st.countdown_remaining - seconds)
            if st.countdown_remaining <= 0:
                self._start_set(1)
                return True
        elif st.phase == SessionPhase.REST:
            st.rest_time_remaining = max(0.0, st.rest_time_remaining - seconds)
            if st.rest_time_remaining <= 0:
                self._start_set(st.current_set + 1)
                return True
        return False

    # ------------------------------------------------------------------
    # Active set
    # ------------------------------------------------------------------

    def record_frame(self, result: FrameResult, top_issue: Optional[FormIssue] = None) -> None:
        """Publish the latest frame verdict; ignored outside the active phase."""
        st = self._state
        if st.phase != SessionPhase.ACTIVE or result.neutral:
            return
        st.current_score = result.score
        st.current_issues = list(result.issues)
        st.top_issue = top_issue if top_issue is not None else result.top_issue

    def record_rep(self, rep: RepSummary) -> bool:
        """Count a completed rep.

        Returns:
            True if this rep finished the set (the analyzer should be reset).

        Raises:
            SessionStateError: Outside the active phase.
        """
        self._require(SessionPhase.ACTIVE, action="record a rep")
        st = self._state
        if st.current_reps >= st.config.target_reps:
            logger.warning("Ignoring rep beyond target (%d)", st.config.target_reps)
            return False

        st.current_reps += 1
        self._rep_scores.append(rep.score)
        self._rep_issues.append(list(rep.issues))
        logger.info("Set %d: rep %d/%d, score=%.1f", st.current_set, st.current_reps,
                    st.config.target_reps, rep.score)

        if st.current_reps >= st.config.target_reps:
            self._complete_set()
            return True
        return False

    # ------------------------------------------------------------------
    # Pause / stop / failure
    # ------------------------------------------------------------------

    def pause(self) -> None:
        self._require(*PAUSABLE_PHASES, action="pause")
        self._state.paused_from = self._state.phase
        self._paused_at = self._clock()
        self._set_phase(SessionPhase.PAUSED)

    def resume(self) -> None:
        self._require(SessionPhase.PAUSED, action="resume")
        if self._paused_at is not None:
            self._paused_total += self._clock() - self._paused_at
        self._paused_at = None
        resume_to = self._state.paused_from or SessionPhase.ACTIVE
        self._state.paused_from = None
        self._set_phase(resume_to)

    def finish(self) -> None:
        """Stop the session early, keeping a partially finished set."""
        st = self._state
        if st.phase in TERMINAL_PHASES:
            return
        in_set = st.phase == SessionPhase.ACTIVE or (
            st.phase == SessionPhase.PAUSED and st.paused_from == SessionPhase.ACTIVE
        )
        if in_set and st.current_reps > 0:
            self._append_set()
        st.ended_early = True
        st.paused_from = None
        self._set_phase(SessionPhase.COMPLETED)

    def note_error(self, message: Optional[str]) -> None:
        """Record a recoverable problem without changing phase."""
        self._state.error_message = message

    def fail(self, message: str) -> None:
        """Terminal error; finished sets are kept."""
        if self._state.phase in TERMINAL_PHASES:
            return
        self._state.error_message = message
        self._state.paused_from = None
        logger.error("Session failed: %s", message)
        self._set_phase(SessionPhase.ERRORED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, *phases: SessionPhase, action: str) -> None:
        if self._state.phase not in phases:
            raise SessionStateError(
                f"Cannot {action} while {self._state.phase.value} "
                f"(allowed: {', '.join(p.value for p in phases)})"
            )

    def _set_phase(self, phase: SessionPhase) -> None:
        if phase != self._state.phase:
            logger.info("Session phase: %s -> %s", self._state.phase.value, phase.value)
        self._state.phase = phase

    def _reset_set_accumulators(self) -> None:
        self._rep_scores: List[float] = []
        self._rep_issues: List[List[FormIssue]] = []
        self._set_started_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._paused_total = 0.0

    def _start_countdown(self) -> None:
        self._state.countdown_remaining = float(self._state.config.countdown_seconds)
        self._set_phase(SessionPhase.COUNTDOWN)
        if self._state.countdown_remaining <= 0:
            self._start_set(1)

    def _start_set(self, set_number: int) -> None:
        st = self._state
        st.current_set = set_number
        st.current_reps = 0
        st.current_score = 100.0
        st.current_issues = []
        st.top_issue = None
        st.countdown_remaining = 0.0
        st.rest_time_remaining = 0.0
        self._reset_set_accumulators()
        self._set_started_at = self._clock()
        self._set_phase(SessionPhase.ACTIVE)

    def _complete_set(self) -> None:
        st = self._state
        self._append_set()
        if len(st.completed_sets) >= st.config.target_sets:
            self._set_phase(SessionPhase.COMPLETED)
        elif st.config.rest_seconds <= 0:
            self._start_set(st.current_set + 1)
        else:
            st.rest_time_remaining = float(st.config.rest_seconds)
            self._set_phase(SessionPhase.REST)

    def _append_set(self) -> None:
        st = self._state
        now = self._clock()
        paused = self._paused_total
        if self._paused_at is not None:
            paused += now - self._paused_at
        started = self._set_started_at if self._set_started_at is not None else now
        duration = max(0.0, now - started - paused)

        scores = self._rep_scores
        counts: Counter = Counter()
        all_issues: List[FormIssue] = []
        for rep_issues in self._rep_issues:
            counts.update({issue.issue_type for issue in rep_issues})
            all_issues.extend(rep_issues)
        issues = sorted(dedupe_issues(all_issues),
                        key=lambda i: (-i.priority.rank, -counts[i.issue_type]))

        set_data = SetData(
            set_number=st.current_set,
            reps=st.current_reps,
            average_score=sum(scores) / len(scores) if scores else 0.0,
            best_rep_score=max(scores) if scores else None,
            worst_rep_score=min(scores) if scores else None,
            duration_seconds=duration,
            issues=issues,
            issue_counts=dict(counts),
            rep_scores=list(scores),
        )
        st.completed_sets.append(set_data)
        logger.info("Set %d finished: %d reps, average %.1f", set_data.set_number,
                    set_data.reps, set_data.average_score)
        self._reset_set_accumulators()
