"""
Session orchestration: the set/rep state machine, the frame-loop controller,
its performance monitor and end-of-session summaries.
"""

from .controller import ControllerStatus, SessionController
from .monitor import PerformanceLevel, PerformanceMonitor, PerformanceReport
from .state import (
    SessionConfig,
    SessionPhase,
    SetData,
    SetupChecklistItem,
    TrainingSession,
    TrainingSessionState,
)
from .summary import SessionSummary, build_session_summary, generate_feedback
from .ticker import SessionTicker

__all__ = [
    "ControllerStatus",
    "SessionController",
    "PerformanceLevel",
    "PerformanceMonitor",
    "PerformanceReport",
    "SessionConfig",
    "SessionPhase",
    "SetData",
    "SetupChecklistItem",
    "TrainingSession",
    "TrainingSessionState",
    "SessionSummary",
    "build_session_summary",
    "generate_feedback",
    "SessionTicker",
]
