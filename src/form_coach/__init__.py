"""
Real-time exercise form coaching from pose landmarks.

Pose frames from a camera + detector are smoothed, analyzed per exercise
(rep counting, form scoring, prioritized issues) and fed into a set/rep
session state machine.
"""

from .analyzers import ExerciseType, FormIssue, FrameResult, RepSummary, create_analyzer
from .errors import (
    CollaboratorUnavailableError,
    FormCoachError,
    InvalidSessionConfigError,
    SessionStateError,
)
from .pose import PoseFrame
from .session import SessionConfig, SessionController, SessionPhase, TrainingSession

__version__ = "0.1.0"

__all__ = [
    "ExerciseType",
    "FormIssue",
    "FrameResult",
    "RepSummary",
    "create_analyzer",
    "CollaboratorUnavailableError",
    "FormCoachError",
    "InvalidSessionConfigError",
    "SessionStateError",
    "PoseFrame",
    "SessionConfig",
    "SessionController",
    "SessionPhase",
    "TrainingSession",
]
