"""
Analyzer factory and static exercise metadata.

The exercise set is closed: ``ANALYZERS`` and ``EXERCISE_INFO`` cover every
``ExerciseType`` member, and a missing entry is a programming error that the
tests catch.
"""

from typing import Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict

from ..config import MIN_CONFIDENCE
from .arm_curl import ArmCurlAnalyzer
from .base import BaseFormAnalyzer
from .models import ExerciseType
from .pushup import PushUpAnalyzer
from .shoulder_press import ShoulderPressAnalyzer
from .side_raise import SideRaiseAnalyzer
from .squat import SquatAnalyzer
from .thresholds import load_thresholds


class ExerciseInfo(BaseModel):
    """Display metadata for one exercise."""

    model_config = ConfigDict(frozen=True)

    exercise_type: ExerciseType
    display_name: str
    description: str
    key_body_parts: List[str]
    recommended_orientation: Literal["front", "side"]


ANALYZERS: Dict[ExerciseType, Type[BaseFormAnalyzer]] = {
    ExerciseType.SQUAT: SquatAnalyzer,
    ExerciseType.PUSH_UP: PushUpAnalyzer,
    ExerciseType.ARM_CURL: ArmCurlAnalyzer,
    ExerciseType.SIDE_RAISE: SideRaiseAnalyzer,
    ExerciseType.SHOULDER_PRESS: ShoulderPressAnalyzer,
}

EXERCISE_INFO: Dict[ExerciseType, ExerciseInfo] = {
    ExerciseType.SQUAT: ExerciseInfo(
        exercise_type=ExerciseType.SQUAT,
        display_name="Squat",
        description="Foundational lower-body exercise. Coordinate knees and hips "
                    "and keep your back straight.",
        key_body_parts=["knees", "hips", "back", "heels"],
        recommended_orientation="side",
    ),
    ExerciseType.PUSH_UP: ExerciseInfo(
        exercise_type=ExerciseType.PUSH_UP,
        display_name="Push-up",
        description="Chest, arm and core exercise. Keep your body in one straight line.",
        key_body_parts=["elbows", "shoulders", "hips", "neck"],
        recommended_orientation="side",
    ),
    ExerciseType.ARM_CURL: ExerciseInfo(
        exercise_type=ExerciseType.ARM_CURL,
        display_name="Arm Curl",
        description="Biceps exercise. Keep your elbows fixed and avoid swinging.",
        key_body_parts=["elbows", "shoulders", "wrists"],
        recommended_orientation="front",
    ),
    ExerciseType.SIDE_RAISE: ExerciseInfo(
        exercise_type=ExerciseType.SIDE_RAISE,
        display_name="Side Raise",
        description="Middle deltoid exercise. Raise your arms out to the side up to "
                    "shoulder height.",
        key_body_parts=["shoulders", "elbows", "wrists", "core"],
        recommended_orientation="front",
    ),
    ExerciseType.SHOULDER_PRESS: ExerciseInfo(
        exercise_type=ExerciseType.SHOULDER_PRESS,
        display_name="Shoulder Press",
        description="Overall shoulder exercise. Press straight up overhead.",
        key_body_parts=["elbows", "shoulders", "lower back"],
        recommended_orientation="front",
    ),
}


def create_analyzer(
    exercise_type: ExerciseType,
    threshold_overrides: Optional[dict] = None,
    min_confidence: float = MIN_CONFIDENCE,
    **kwargs,
) -> BaseFormAnalyzer:
    """Create a fresh analyzer for *exercise_type*.

    Args:
        exercise_type: Exercise to analyze.
        threshold_overrides: Values overlaid on the exercise's threshold table.
        min_confidence: Minimum landmark likelihood for a usable frame.
        **kwargs: Passed to the analyzer (e.g. rep duration bounds).
    """
    cls = ANALYZERS[exercise_type]
    thresholds = load_thresholds(exercise_type, overrides=threshold_overrides)
    return cls(thresholds=thresholds, min_confidence=min_confidence, **kwargs)


def exercise_info(exercise_type: ExerciseType) -> ExerciseInfo:
    return EXERCISE_INFO[exercise_type]


def display_name(exercise_type: ExerciseType) -> str:
    return EXERCISE_INFO[exercise_type].display_name


def description(exercise_type: ExerciseType) -> str:
    return EXERCISE_INFO[exercise_type].description


def key_body_parts(exercise_type: ExerciseType) -> List[str]:
    return list(EXERCISE_INFO[exercise_type].key_body_parts)


def recommended_orientation(exercise_type: ExerciseType) -> str:
    return EXERCISE_INFO[exercise_type].recommended_orientation


def available_exercises() -> List[ExerciseType]:
    return list(ExerciseType)
