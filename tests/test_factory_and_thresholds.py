"""Tests for the analyzer factory, exercise metadata, threshold tables and
the surfaced-issue selector."""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_coach.analyzers.factory import (
    ANALYZERS,
    EXERCISE_INFO,
    available_exercises,
    create_analyzer,
    description,
    display_name,
    key_body_parts,
    recommended_orientation,
)
from form_coach.analyzers.feedback import FeedbackSelector
from form_coach.analyzers.models import (
    ExerciseType,
    FeedbackLevel,
    FeedbackPriority,
    FormIssue,
    RepPhase,
    dedupe_issues,
    top_issue,
)
from form_coach.analyzers.thresholds import (
    THRESHOLD_MODELS,
    SquatThresholds,
    _load_thresholds_config,
    load_thresholds,
)


def _issue(issue_type, priority):
    return FormIssue(issue_type=issue_type, message=issue_type, priority=priority)


# ============================================================================
# Test: Factory
# ============================================================================

class TestFactory:

    @pytest.mark.parametrize("exercise", list(ExerciseType))
    def test_every_exercise_has_an_analyzer(self, exercise):
        analyzer = create_analyzer(exercise)
        assert analyzer.exercise_type == exercise
        assert analyzer.rep_count == 0
        assert analyzer.phase == analyzer.REST_PHASE

    @pytest.mark.parametrize("exercise", list(ExerciseType))
    def test_every_exercise_has_metadata(self, exercise):
        info = EXERCISE_INFO[exercise]
        assert info.exercise_type == exercise
        assert display_name(exercise)
        assert description(exercise)
        assert key_body_parts(exercise)
        assert recommended_orientation(exercise) in ("front", "side")

    def test_tables_cover_the_enum(self):
        assert set(ANALYZERS) == set(ExerciseType)
        assert set(EXERCISE_INFO) == set(ExerciseType)
        assert set(THRESHOLD_MODELS) == set(ExerciseType)
        assert available_exercises() == list(ExerciseType)

    def test_fresh_instances(self):
        a = create_analyzer(ExerciseType.SQUAT)
        b = create_analyzer(ExerciseType.SQUAT)
        assert a is not b

    def test_orientation(self):
        assert recommended_orientation(ExerciseType.SQUAT) == "side"
        assert recommended_orientation(ExerciseType.PUSH_UP) == "side"
        assert recommended_orientation(ExerciseType.ARM_CURL) == "front"

    def test_rest_phases(self):
        assert create_analyzer(ExerciseType.SQUAT).phase == RepPhase.TOP
        assert create_analyzer(ExerciseType.PUSH_UP).phase == RepPhase.TOP
        assert create_analyzer(ExerciseType.ARM_CURL).phase == RepPhase.BOTTOM
        assert create_analyzer(ExerciseType.SIDE_RAISE).phase == RepPhase.BOTTOM
        assert create_analyzer(ExerciseType.SHOULDER_PRESS).phase == RepPhase.BOTTOM

    def test_overrides_and_kwargs(self):
        analyzer = create_analyzer(ExerciseType.SQUAT,
                                   threshold_overrides={"target_knee_angle": 100},
                                   min_confidence=0.8, min_rep_duration_ms=100)
        assert analyzer.thresholds.target_knee_angle == 100
        assert analyzer.min_confidence == 0.8
        assert analyzer.min_rep_duration_ms == 100


# ============================================================================
# Test: Thresholds
# ============================================================================

class TestThresholds:

    def test_defaults(self):
        t = load_thresholds(ExerciseType.SQUAT)
        assert isinstance(t, SquatThresholds)
        assert t.target_knee_angle == 90.0
        assert t.phases.start == 160.0
        assert t.rep_score_mode == "min"

    def test_yaml_section(self, tmp_path):
        path = tmp_path / "thresholds.yaml"
        path.write_text(
            "squat:\n"
            "  target_knee_angle: 95\n"
            "  phases:\n"
            "    turn: 115\n"
            "arm_curl:\n"
            "  max_angular_velocity: 250\n"
        )
        squat = load_thresholds(ExerciseType.SQUAT, config_path=path)
        assert squat.target_knee_angle == 95
        assert squat.phases.turn == 115
        assert squat.phases.start == 160.0
        curl = load_thresholds(ExerciseType.ARM_CURL, config_path=path)
        assert curl.max_angular_velocity == 250

    def test_overrides_win_over_yaml(self, tmp_path):
        path = tmp_path / "thresholds.yaml"
        path.write_text("squat:\n  target_knee_angle: 95\n")
        t = load_thresholds(ExerciseType.SQUAT, overrides={"target_knee_angle": 85},
                            config_path=path)
        assert t.target_knee_angle == 85

    def test_missing_file_is_empty(self, tmp_path):
        assert _load_thresholds_config(tmp_path / "nope.yaml") == {}

    def test_empty_file_is_empty(self, tmp_path):
        path = tmp_path / "thresholds.yaml"
        path.write_text("# nothing here\n")
        assert _load_thresholds_config(path) == {}

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            load_thresholds(ExerciseType.SQUAT, overrides={"target_knee_angel": 95})

    def test_bad_value_rejected(self):
        with pytest.raises(ValidationError):
            load_thresholds(ExerciseType.ARM_CURL, overrides={"rep_score_mode": "median"})

    def test_tables_are_frozen(self):
        t = load_thresholds(ExerciseType.PUSH_UP)
        with pytest.raises(ValidationError):
            t.hip_sag_threshold = 0.5


# ============================================================================
# Test: Issue helpers and feedback selection
# ============================================================================

class TestIssues:

    def test_top_issue(self):
        issues = [_issue("a", FeedbackPriority.LOW), _issue("b", FeedbackPriority.HIGH),
                  _issue("c", FeedbackPriority.HIGH)]
        assert top_issue(issues).issue_type == "b"
        assert top_issue([]) is None

    def test_dedupe_keeps_highest_priority(self):
        issues = [_issue("a", FeedbackPriority.LOW), _issue("a", FeedbackPriority.CRITICAL),
                  _issue("b", FeedbackPriority.MEDIUM)]
        deduped = {i.issue_type: i.priority for i in dedupe_issues(issues)}
        assert deduped == {"a": FeedbackPriority.CRITICAL, "b": FeedbackPriority.MEDIUM}

    def test_feedback_levels(self):
        assert FeedbackLevel.from_score(95) == FeedbackLevel.EXCELLENT
        assert FeedbackLevel.from_score(70) == FeedbackLevel.GOOD
        assert FeedbackLevel.from_score(55) == FeedbackLevel.FAIR
        assert FeedbackLevel.from_score(10) == FeedbackLevel.NEEDS_IMPROVEMENT


class TestFeedbackSelector:

    def test_holds_issue_for_interval(self):
        sel = FeedbackSelector(interval_ms=1000)
        first = sel.select([_issue("a", FeedbackPriority.MEDIUM)], 0)
        assert first.issue_type == "a"
        assert sel.select([_issue("b", FeedbackPriority.LOW)], 500).issue_type == "a"
        assert sel.select([], 900).issue_type == "a"
        assert sel.select([_issue("b", FeedbackPriority.LOW)], 1200).issue_type == "b"

    def test_clears_after_interval(self):
        sel = FeedbackSelector(interval_ms=1000)
        sel.select([_issue("a", FeedbackPriority.MEDIUM)], 0)
        assert sel.select([], 1500) is None
        assert sel.current is None

    def test_more_urgent_issue_preempts(self):
        sel = FeedbackSelector(interval_ms=1000)
        sel.select([_issue("a", FeedbackPriority.MEDIUM)], 0)
        assert sel.select([_issue("b", FeedbackPriority.HIGH)], 100).issue_type == "b"

    def test_critical_always_preempts(self):
        sel = FeedbackSelector(interval_ms=1000)
        sel.select([_issue("a", FeedbackPriority.CRITICAL)], 0)
        assert sel.select([_issue("b", FeedbackPriority.CRITICAL)], 100).issue_type == "b"

    def test_reset(self):
        sel = FeedbackSelector(interval_ms=1000)
        sel.select([_issue("a", FeedbackPriority.MEDIUM)], 0)
        sel.reset()
        assert sel.current is None
