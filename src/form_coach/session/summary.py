"""
Session summaries for persistence and the results screen.

- ``build_session_summary``: aggregates finished sets into one record
- ``generate_feedback``: rule-based coaching lines from rep scores and issues
"""

import logging
from collections import Counter
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..analyzers.factory import display_name
from ..analyzers.models import ExerciseType, FeedbackPriority, FormIssue
from .state import SessionPhase, SetData, TrainingSessionState

logger = logging.getLogger(__name__)

# Drop in mean rep score (first vs last three reps) that counts as fatigue.
FATIGUE_DROP = 8.0


class IssueFrequency(BaseModel):
    issue_type: str
    message: str
    priority: FeedbackPriority
    rep_count: int = Field(description="Number of reps the issue occurred in")


class SessionSummary(BaseModel):
    exercise_type: ExerciseType
    exercise_name: str
    final_phase: SessionPhase
    ended_early: bool = False
    error_message: Optional[str] = None
    target_reps: int
    target_sets: int
    sets: List[SetData] = Field(default_factory=list)
    total_reps: int = 0
    average_score: float = Field(default=0.0, ge=0.0, le=100.0)
    best_set_score: Optional[float] = None
    top_issues: List[IssueFrequency] = Field(default_factory=list)
    fatigue_detected: bool = False
    feedback: List[str] = Field(default_factory=list)

    @property
    def completed_sets(self) -> int:
        return len(self.sets)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _issue_frequencies(sets: List[SetData], limit: int = 3) -> List[IssueFrequency]:
    counts: Counter = Counter()
    examples: Dict[str, FormIssue] = {}
    for s in sets:
        counts.update(s.issue_counts)
        for issue in s.issues:
            examples.setdefault(issue.issue_type, issue)
    ranked = sorted(
        (t for t in counts if t in examples),
        key=lambda t: (-counts[t], -examples[t].priority.rank, t),
    )
    return [
        IssueFrequency(
            issue_type=t,
            message=examples[t].message,
            priority=examples[t].priority,
            rep_count=counts[t],
        )
        for t in ranked[:limit]
    ]


def generate_feedback(
    rep_scores: List[float],
    top_issues: List[IssueFrequency],
    overall_score: float,
) -> List[str]:
    """Produce rule-based coaching lines for the end of a session.

    Args:
        rep_scores: Every rep score of the session, in order (0-100).
        top_issues: Most frequent issues, most frequent first.
        overall_score: Mean rep score (0-100).

    Returns:
        List of human-readable feedback strings.
    """
    tips: List[str] = []
    if not rep_scores:
        return ["No complete reps were recorded in this session."]

    # Overall summary
    if overall_score >= 90:
        tips.append(f"Excellent form! Your average score was {overall_score:.0f}/100. Keep it up!")
    elif overall_score >= 70:
        tips.append(f"Good form overall ({overall_score:.0f}/100). A few areas to refine.")
    elif overall_score >= 50:
        tips.append(
            f"Your average score was {overall_score:.0f}/100, there is room for improvement."
        )
    else:
        tips.append(
            f"Your form needs attention (average {overall_score:.0f}/100). "
            "Consider reviewing proper technique or lowering the weight."
        )

    # Most frequent issues
    if top_issues:
        main = top_issues[0]
        tips.append(f"Focus on improving: {main.message.lower()} ({main.rep_count} reps).")
        critical = [i for i in top_issues if i.priority == FeedbackPriority.CRITICAL]
        if critical and critical[0] is not main:
            tips.append(f"Safety first: {critical[0].message.lower()}.")

    # Fatigue check: compare first 3 vs last 3 reps
    if len(rep_scores) >= 6:
        early_avg = _mean(rep_scores[:3])
        late_avg = _mean(rep_scores[-3:])
        if early_avg - late_avg > FATIGUE_DROP:
            tips.append(
                f"Fatigue detected: your form dropped from {early_avg:.0f} "
                f"(early reps) to {late_avg:.0f} (final reps). "
                "Consider reducing weight or taking longer rest."
            )

    return tips


def build_session_summary(state: TrainingSessionState) -> SessionSummary:
    """Aggregate a session state into a summary record."""
    sets = list(state.completed_sets)
    rep_scores = [score for s in sets for score in s.rep_scores]
    overall = _mean(rep_scores)
    top_issues = _issue_frequencies(sets)
    feedback = generate_feedback(rep_scores, top_issues, overall)
    fatigue = any(line.startswith("Fatigue detected") for line in feedback)

    return SessionSummary(
        exercise_type=state.config.exercise_type,
        exercise_name=display_name(state.config.exercise_type),
        final_phase=state.phase,
        ended_early=state.ended_early,
        error_message=state.error_message,
        target_reps=state.config.target_reps,
        target_sets=state.config.target_sets,
        sets=sets,
        total_reps=state.total_reps,
        average_score=min(100.0, max(0.0, overall)),
        best_set_score=max((s.average_score for s in sets), default=None),
        top_issues=top_issues,
        fatigue_detected=fatigue,
        feedback=feedback,
    )
