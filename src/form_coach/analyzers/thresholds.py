"""
Per-exercise thresholds, target ranges and scoring weights.

Every number an analyzer compares against lives here, grouped per exercise
so each table can be validated and tested on its own.  Defaults can be
overridden per exercise from ``config/analyzer_thresholds.yaml``::

    squat:
      target_knee_angle: 95
      phases:
        turn: 115

Angles are in degrees.  Distances are in detector-normalized units unless
the field name says otherwise.
"""

import logging
from pathlib import Path
from typing import Dict, Literal, Optional, Type

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ..config import THRESHOLDS_CONFIG_PATH
from .models import ExerciseType

logger = logging.getLogger(__name__)


# ============================================================================
# Shared sections
# ============================================================================

class PhaseThresholds(BaseModel):
    """Drive-angle thresholds for the rep cycle.

    A rep starts when the drive angle moves past ``start`` away from the rest
    position, reaches the far phase past ``turn``, turns around once it has
    come back ``reversal_margin`` degrees from its extreme, and completes when
    it is back inside ``finish``.  ``finish`` sits between the rest position
    and ``start`` so jitter around ``start`` cannot count a rep.
    """

    model_config = ConfigDict(frozen=True)

    start: float
    turn: float
    finish: float
    reversal_margin: float = Field(default=10.0, gt=0.0)


class _ExerciseThresholds(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    phases: PhaseThresholds
    rep_score_mode: Literal["mean", "min"] = "mean"
    symmetry_threshold: float = Field(default=0.85, ge=0.0, le=1.0)


# ============================================================================
# Squat
# ============================================================================

class SquatWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    depth: float = 0.4
    symmetry: float = 0.15
    knee_over_toe: float = 0.1   # per side
    back: float = 0.15
    heel_lift: float = 0.05      # per side


class SquatThresholds(_ExerciseThresholds):
    phases: PhaseThresholds = PhaseThresholds(start=160.0, turn=110.0, finish=165.0)
    rep_score_mode: Literal["mean", "min"] = "min"

    target_knee_angle: float = 90.0
    knee_angle_tolerance: float = 15.0
    perfect_band: float = 5.0
    good_band: float = 10.0
    min_knee_angle: float = 70.0

    max_forward_lean: float = 45.0
    min_forward_lean: float = 15.0
    knee_over_toe_threshold: float = 0.05
    heel_lift_threshold: float = 0.02

    weights: SquatWeights = SquatWeights()


# ============================================================================
# Push-up
# ============================================================================

class PushUpWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    depth: float = 0.3
    hips: float = 0.45
    symmetry: float = 0.1
    head: float = 0.15


class PushUpThresholds(_ExerciseThresholds):
    phases: PhaseThresholds = PhaseThresholds(start=150.0, turn=100.0, finish=155.0)
    rep_score_mode: Literal["mean", "min"] = "min"

    target_bottom_angle: float = 90.0
    depth_tolerance: float = 15.0
    # Hip offset from the shoulder-ankle line as a fraction of body length.
    hip_sag_threshold: float = 0.05
    hip_pike_threshold: float = 0.08
    head_drop_threshold: float = 0.08

    weights: PushUpWeights = PushUpWeights()


# ============================================================================
# Arm curl
# ============================================================================

class ArmCurlWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    range_of_motion: float = 0.35
    elbow_swing: float = 0.15    # per side
    shoulder_shrug: float = 0.1  # per side
    momentum: float = 0.15
    symmetry: float = 0.1


class ArmCurlThresholds(_ExerciseThresholds):
    phases: PhaseThresholds = PhaseThresholds(start=140.0, turn=70.0, finish=145.0)

    target_min_angle: float = 40.0
    range_tolerance: float = 15.0
    elbow_swing_threshold: float = 0.05
    shoulder_shrug_threshold: float = 0.02
    max_angular_velocity: float = 300.0  # degrees per second

    weights: ArmCurlWeights = ArmCurlWeights()


# ============================================================================
# Side raise
# ============================================================================

class SideRaiseWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    raise_height: float = 0.35
    elbow_bend: float = 0.15
    body_sway: float = 0.2
    symmetry: float = 0.15
    shoulder_shrug: float = 0.075  # per side


class SideRaiseThresholds(_ExerciseThresholds):
    phases: PhaseThresholds = PhaseThresholds(start=35.0, turn=70.0, finish=30.0)

    target_raise_angle: float = 85.0
    min_raise_angle: float = 70.0
    max_raise_angle: float = 100.0
    min_elbow_angle: float = 140.0
    body_sway_threshold: float = 0.03
    shoulder_shrug_threshold: float = 0.02

    weights: SideRaiseWeights = SideRaiseWeights()


# ============================================================================
# Shoulder press
# ============================================================================

class ShoulderPressWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    range_of_motion: float = 0.35
    forearm_path: float = 0.1  # per side
    symmetry: float = 0.2
    wrist_height: float = 0.1
    back: float = 0.15


class ShoulderPressThresholds(_ExerciseThresholds):
    phases: PhaseThresholds = PhaseThresholds(start=110.0, turn=150.0, finish=105.0)
    rep_score_mode: Literal["mean", "min"] = "min"

    target_top_angle: float = 170.0
    range_tolerance: float = 15.0
    max_forearm_tilt: float = 20.0
    wrist_height_threshold: float = 0.05
    max_torso_tilt: float = 15.0
    # Torso length may shrink to this fraction of the rest pose before the
    # lifter is considered to be leaning back.
    min_torso_ratio: float = 0.9

    weights: ShoulderPressWeights = ShoulderPressWeights()


# ============================================================================
# Lookup & YAML overrides
# ============================================================================

THRESHOLD_MODELS: Dict[ExerciseType, Type[_ExerciseThresholds]] = {
    ExerciseType.SQUAT: SquatThresholds,
    ExerciseType.PUSH_UP: PushUpThresholds,
    ExerciseType.ARM_CURL: ArmCurlThresholds,
    ExerciseType.SIDE_RAISE: SideRaiseThresholds,
    ExerciseType.SHOULDER_PRESS: ShoulderPressThresholds,
}


def _load_thresholds_config(config_path: Optional[Path] = None) -> dict:
    """Load threshold overrides from YAML; empty when the file is absent."""
    path = Path(config_path) if config_path is not None else THRESHOLDS_CONFIG_PATH
    if path.exists():
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}
    return {}


_THRESHOLDS_CONFIG: Optional[dict] = None


def _get_thresholds_config() -> dict:
    """Lazy-load and cache the YAML overrides."""
    global _THRESHOLDS_CONFIG
    if _THRESHOLDS_CONFIG is None:
        _THRESHOLDS_CONFIG = _load_thresholds_config()
        if _THRESHOLDS_CONFIG:
            logger.info("Loaded analyzer threshold overrides from %s", THRESHOLDS_CONFIG_PATH)
    return _THRESHOLDS_CONFIG


def _deep_merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_thresholds(
    exercise_type: ExerciseType,
    overrides: Optional[dict] = None,
    config_path: Optional[Path] = None,
) -> _ExerciseThresholds:
    """Build the threshold table for *exercise_type*.

    Defaults are overlaid with the exercise's YAML section and then with
    *overrides*.

    Args:
        exercise_type: Exercise whose table to build.
        overrides: Extra values, nested like the YAML section.
        config_path: Read this YAML file instead of the cached default.

    Returns:
        A validated, frozen thresholds model.

    Raises:
        pydantic.ValidationError: If an override has an unknown key or a bad value.
    """
    model = THRESHOLD_MODELS[exercise_type]
    cfg = _load_thresholds_config(config_path) if config_path is not None else _get_thresholds_config()

    values = model().model_dump()
    section = cfg.get(exercise_type.value) or {}
    if section:
        values = _deep_merge(values, section)
    if overrides:
        values = _deep_merge(values, overrides)
    return model.model_validate(values)
