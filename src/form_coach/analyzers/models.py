"""
Result models shared by all exercise analyzers.

Uses Pydantic so results validate their own bounds and serialize straight
into session summaries.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Enumerations
# ============================================================================

class ExerciseType(str, Enum):
    SQUAT = "squat"
    PUSH_UP = "push_up"
    ARM_CURL = "arm_curl"
    SIDE_RAISE = "side_raise"
    SHOULDER_PRESS = "shoulder_press"


class RepPhase(str, Enum):
    TOP = "top"
    DESCENDING = "descending"
    BOTTOM = "bottom"
    ASCENDING = "ascending"


class FeedbackPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Higher rank means more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    FeedbackPriority.CRITICAL: 3,
    FeedbackPriority.HIGH: 2,
    FeedbackPriority.MEDIUM: 1,
    FeedbackPriority.LOW: 0,
}


class FeedbackLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_IMPROVEMENT = "needs_improvement"

    @classmethod
    def from_score(cls, score: float) -> "FeedbackLevel":
        if score >= 90:
            return cls.EXCELLENT
        if score >= 70:
            return cls.GOOD
        if score >= 50:
            return cls.FAIR
        return cls.NEEDS_IMPROVEMENT


# ============================================================================
# Issues and results
# ============================================================================

class FormIssue(BaseModel):
    """One detected deviation from correct technique."""

    model_config = ConfigDict(frozen=True)

    issue_type: str
    message: str
    priority: FeedbackPriority
    suggestion: Optional[str] = None
    body_part: Optional[str] = None
    current_value: Optional[float] = None
    target_value: Optional[float] = None


def top_issue(issues: List[FormIssue]) -> Optional[FormIssue]:
    """Highest-priority issue; the first one wins ties."""
    best: Optional[FormIssue] = None
    for issue in issues:
        if best is None or issue.priority.rank > best.priority.rank:
            best = issue
    return best


def dedupe_issues(issues: List[FormIssue]) -> List[FormIssue]:
    """Keep one issue per type, preferring the highest priority seen."""
    by_type: Dict[str, FormIssue] = {}
    for issue in issues:
        current = by_type.get(issue.issue_type)
        if current is None or issue.priority.rank > current.priority.rank:
            by_type[issue.issue_type] = issue
    return list(by_type.values())


class RepSummary(BaseModel):
    """Result of one completed repetition."""

    model_config = ConfigDict(frozen=True)

    rep_number: int = Field(ge=1, description="1-indexed rep number within the set")
    score: float = Field(ge=0.0, le=100.0)
    issues: List[FormIssue] = Field(default_factory=list)
    start_ms: int
    end_ms: int
    paused_ms: int = Field(default=0, ge=0, description="Session pause time inside the rep")
    min_angle: float
    max_angle: float

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms - self.paused_ms


class FrameResult(BaseModel):
    """The analyzer's verdict for one frame.

    ``neutral`` frames carry no new information: the score echoes the last
    valid frame and no issues are reported.
    """

    timestamp_ms: int
    score: float = Field(ge=0.0, le=100.0)
    issues: List[FormIssue] = Field(default_factory=list)
    phase: RepPhase
    rep_count: int = Field(ge=0)
    joint_angles: Dict[str, float] = Field(default_factory=dict)
    rep_completed: bool = False
    completed_rep: Optional[RepSummary] = None
    neutral: bool = False
    low_confidence: bool = False

    @property
    def top_issue(self) -> Optional[FormIssue]:
        return top_issue(self.issues)

    @property
    def level(self) -> FeedbackLevel:
        return FeedbackLevel.from_score(self.score)
