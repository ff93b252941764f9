"""
Per-exercise form analyzers.

Each analyzer consumes pose frames, counts reps with a hysteresis state
machine on one drive angle, scores form per frame and reports prioritized
form issues.
"""

from .base import BaseFormAnalyzer
from .factory import (
    EXERCISE_INFO,
    ExerciseInfo,
    available_exercises,
    create_analyzer,
    description,
    display_name,
    exercise_info,
    key_body_parts,
    recommended_orientation,
)
from .feedback import FeedbackSelector
from .models import (
    ExerciseType,
    FeedbackLevel,
    FeedbackPriority,
    FormIssue,
    FrameResult,
    RepPhase,
    RepSummary,
)
from .thresholds import load_thresholds

__all__ = [
    "BaseFormAnalyzer",
    "EXERCISE_INFO",
    "ExerciseInfo",
    "available_exercises",
    "create_analyzer",
    "description",
    "display_name",
    "exercise_info",
    "key_body_parts",
    "recommended_orientation",
    "FeedbackSelector",
    "ExerciseType",
    "FeedbackLevel",
    "FeedbackPriority",
    "FormIssue",
    "FrameResult",
    "RepPhase",
    "RepSummary",
    "load_thresholds",
]
