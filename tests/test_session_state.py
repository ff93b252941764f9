"""Tests for the training session state machine and session summaries.

Covers:
  - Config validation
  - Setup checklist, countdown, set/rest transitions
  - Pause / resume timing, early stop, failure
  - End-of-session summary and feedback lines
"""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_coach.analyzers.models import (
    ExerciseType,
    FeedbackPriority,
    FormIssue,
    FrameResult,
    RepPhase,
    RepSummary,
)
from form_coach.errors import InvalidSessionConfigError, SessionStateError
from form_coach.session.state import (
    SessionConfig,
    SessionPhase,
    TrainingSession,
)
from form_coach.session.summary import (
    IssueFrequency,
    build_session_summary,
    generate_feedback,
)


# ============================================================================
# Fixtures
# ============================================================================

class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _config(**values):
    defaults = dict(exercise_type=ExerciseType.SQUAT, target_reps=3, target_sets=2,
                    rest_seconds=30, countdown_seconds=3)
    defaults.update(values)
    return SessionConfig.create(**defaults)


def _rep(score, issues=(), number=1):
    return RepSummary(rep_number=number, score=score, issues=list(issues),
                      start_ms=0, end_ms=1000, min_angle=80.0, max_angle=170.0)


def _issue(issue_type, priority=FeedbackPriority.MEDIUM):
    return FormIssue(issue_type=issue_type, message=f"Fix {issue_type}", priority=priority)


def _active_session(clock=None, **values):
    session = TrainingSession(_config(**values), clock=clock or FakeClock())
    session.begin_setup()
    session.skip_setup()
    session.skip_countdown()
    return session


# ============================================================================
# Test: Config
# ============================================================================

class TestSessionConfig:

    def test_defaults(self):
        config = SessionConfig.create(exercise_type="arm_curl")
        assert config.exercise_type == ExerciseType.ARM_CURL
        assert config.target_reps == 10
        assert config.target_sets == 3

    @pytest.mark.parametrize("field,value", [
        ("target_reps", 0),
        ("target_reps", 101),
        ("target_sets", 0),
        ("rest_seconds", -1),
        ("countdown_seconds", 31),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(InvalidSessionConfigError) as exc_info:
            _config(**{field: value})
        assert any(field in msg for msg in exc_info.value.errors)

    def test_unknown_exercise(self):
        with pytest.raises(InvalidSessionConfigError):
            SessionConfig.create(exercise_type="deadlift")

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            SessionConfig.create(exercise_type="squat", target_sets=0)

    def test_frozen(self):
        config = _config()
        with pytest.raises(Exception):
            config.target_reps = 5


# ============================================================================
# Test: Setup and countdown
# ============================================================================

class TestSetup:

    def test_initial_state(self):
        state = TrainingSession(_config()).state
        assert state.phase == SessionPhase.IDLE
        assert state.completed_sets == []
        assert state.total_progress == 0.0

    def test_checklist_completion_starts_countdown(self):
        session = TrainingSession(_config())
        session.begin_setup()
        items = [item.id for item in session.state.setup_checklist]
        assert items == ["full_body", "brightness", "background", "distance"]
        for item_id in items[:-1]:
            session.set_checklist_item(item_id)
            assert session.phase == SessionPhase.SETTING_UP
        session.set_checklist_item(items[-1])
        assert session.phase == SessionPhase.COUNTDOWN
        assert session.state.countdown_remaining == 3.0

    def test_unchecking(self):
        session = TrainingSession(_config())
        session.begin_setup()
        session.set_checklist_item("full_body")
        session.set_checklist_item("full_body", False)
        assert not session.state.setup_checklist[0].checked

    def test_unknown_item(self):
        session = TrainingSession(_config())
        session.begin_setup()
        with pytest.raises(KeyError):
            session.set_checklist_item("tripod")

    def test_checklist_outside_setup(self):
        with pytest.raises(SessionStateError):
            TrainingSession(_config()).set_checklist_item("full_body")

    def test_countdown_ticks_into_first_set(self):
        session = TrainingSession(_config())
        session.begin_setup()
        session.skip_setup()
        assert not session.tick(1.0)
        assert session.state.countdown_remaining == 2.0
        assert session.tick(2.5)
        state = session.state
        assert state.phase == SessionPhase.ACTIVE
        assert state.current_set == 1
        assert state.countdown_remaining == 0.0

    def test_zero_countdown_goes_straight_to_active(self):
        session = TrainingSession(_config(countdown_seconds=0))
        session.begin_setup()
        session.skip_setup()
        assert session.phase == SessionPhase.ACTIVE

    def test_abort_setup(self):
        session = TrainingSession(_config())
        session.begin_setup()
        session.abort_setup("camera busy")
        state = session.state
        assert state.phase == SessionPhase.IDLE
        assert state.error_message == "camera busy"
        session.begin_setup()
        assert session.state.error_message is None

    def test_abort_after_quick_start(self):
        session = _active_session()
        session.abort_setup("camera busy")
        assert session.phase == SessionPhase.IDLE
        assert session.state.current_set == 0


# ============================================================================
# Test: Sets and reps
# ============================================================================

class TestSets:

    def test_reps_complete_set_then_rest(self):
        clock = FakeClock()
        session = _active_session(clock)
        clock.advance(12.0)
        assert not session.record_rep(_rep(90, number=1))
        assert not session.record_rep(_rep(80, [_issue("insufficient_depth")], number=2))
        assert session.state.set_progress == pytest.approx(2 / 3)
        assert session.record_rep(_rep(70, [_issue("insufficient_depth")], number=3))

        state = session.state
        assert state.phase == SessionPhase.REST
        assert state.rest_time_remaining == 30.0
        assert len(state.completed_sets) == 1
        s = state.completed_sets[0]
        assert s.set_number == 1
        assert s.reps == 3
        assert s.average_score == pytest.approx(80.0)
        assert s.best_rep_score == 90
        assert s.worst_rep_score == 70
        assert s.duration_seconds == pytest.approx(12.0)
        assert s.issue_counts == {"insufficient_depth": 2}
        assert state.total_progress == pytest.approx(0.5)

    def test_rest_ticks_into_next_set(self):
        session = _active_session()
        for i in range(3):
            session.record_rep(_rep(90, number=i + 1))
        assert session.tick(30.0)
        state = session.state
        assert state.phase == SessionPhase.ACTIVE
        assert state.current_set == 2
        assert state.current_reps == 0

    def test_skip_rest(self):
        session = _active_session()
        for i in range(3):
            session.record_rep(_rep(90, number=i + 1))
        session.skip_rest()
        assert session.phase == SessionPhase.ACTIVE
        assert session.state.current_set == 2

    def test_last_set_completes_session(self):
        session = _active_session(target_sets=1)
        for i in range(3):
            session.record_rep(_rep(90, number=i + 1))
        state = session.state
        assert state.phase == SessionPhase.COMPLETED
        assert not state.ended_early
        assert state.total_progress == 1.0
        assert state.total_reps == 3

    def test_zero_rest_starts_next_set(self):
        session = _active_session(rest_seconds=0)
        for i in range(3):
            session.record_rep(_rep(90, number=i + 1))
        assert session.phase == SessionPhase.ACTIVE
        assert session.state.current_set == 2

    def test_rep_outside_active_rejected(self):
        session = TrainingSession(_config())
        with pytest.raises(SessionStateError):
            session.record_rep(_rep(90))

    def test_record_frame(self):
        session = _active_session()
        issue = _issue("hip_sag", FeedbackPriority.CRITICAL)
        result = FrameResult(timestamp_ms=0, score=72.0, issues=[issue],
                             phase=RepPhase.BOTTOM, rep_count=0)
        session.record_frame(result)
        state = session.state
        assert state.current_score == 72.0
        assert state.top_issue == issue

    def test_neutral_frame_keeps_score(self):
        session = _active_session()
        session.record_frame(FrameResult(timestamp_ms=0, score=72.0, phase=RepPhase.TOP,
                                         rep_count=0))
        session.record_frame(FrameResult(timestamp_ms=33, score=100.0, phase=RepPhase.TOP,
                                         rep_count=0, neutral=True))
        assert session.state.current_score == 72.0

    def test_state_is_a_snapshot(self):
        session = _active_session()
        snapshot = session.state
        session.record_rep(_rep(90))
        assert snapshot.current_reps == 0
        assert session.state.current_reps == 1


# ============================================================================
# Test: Pause, stop, failure
# ============================================================================

class TestPauseStop:

    def test_pause_excluded_from_set_duration(self):
        clock = FakeClock()
        session = _active_session(clock, target_sets=1, target_reps=1)
        clock.advance(5.0)
        session.pause()
        assert session.phase == SessionPhase.PAUSED
        clock.advance(100.0)
        session.resume()
        assert session.phase == SessionPhase.ACTIVE
        clock.advance(5.0)
        session.record_rep(_rep(90))
        assert session.state.completed_sets[0].duration_seconds == pytest.approx(10.0)

    def test_paused_ignores_ticks_and_frames(self):
        session = TrainingSession(_config())
        session.begin_setup()
        session.skip_setup()
        session.pause()
        assert not session.tick(10.0)
        session.record_frame(FrameResult(timestamp_ms=0, score=10.0, phase=RepPhase.TOP,
                                         rep_count=0))
        session.resume()
        state = session.state
        assert state.phase == SessionPhase.COUNTDOWN
        assert state.countdown_remaining == 3.0
        assert state.current_score == 100.0

    def test_pause_during_rest_resumes_rest(self):
        session = _active_session()
        for i in range(3):
            session.record_rep(_rep(90, number=i + 1))
        session.pause()
        session.resume()
        assert session.phase == SessionPhase.REST

    def test_cannot_pause_idle(self):
        with pytest.raises(SessionStateError):
            TrainingSession(_config()).pause()

    def test_resume_requires_pause(self):
        with pytest.raises(SessionStateError):
            _active_session().resume()

    def test_finish_keeps_partial_set(self):
        session = _active_session()
        session.record_rep(_rep(80))
        session.finish()
        state = session.state
        assert state.phase == SessionPhase.COMPLETED
        assert state.ended_early
        assert len(state.completed_sets) == 1
        assert state.completed_sets[0].reps == 1

    def test_finish_while_paused_keeps_partial_set(self):
        session = _active_session()
        session.record_rep(_rep(80))
        session.pause()
        session.finish()
        assert len(session.state.completed_sets) == 1

    def test_finish_without_reps(self):
        session = _active_session()
        session.finish()
        state = session.state
        assert state.phase == SessionPhase.COMPLETED
        assert state.completed_sets == []

    def test_finish_twice_is_harmless(self):
        session = _active_session()
        session.finish()
        session.finish()
        assert session.phase == SessionPhase.COMPLETED

    def test_fail_keeps_finished_sets(self):
        session = _active_session()
        for i in range(3):
            session.record_rep(_rep(90, number=i + 1))
        session.fail("camera disconnected")
        state = session.state
        assert state.phase == SessionPhase.ERRORED
        assert state.error_message == "camera disconnected"
        assert len(state.completed_sets) == 1

    def test_note_error_keeps_phase(self):
        session = _active_session()
        session.note_error("dropped frames")
        assert session.phase == SessionPhase.ACTIVE
        assert session.state.error_message == "dropped frames"


# ============================================================================
# Test: Summary
# ============================================================================

class TestSummary:

    def test_summary_of_finished_session(self):
        session = _active_session(target_sets=2, rest_seconds=0)
        depth = _issue("insufficient_depth")
        lean = _issue("excessive_forward_lean", FeedbackPriority.CRITICAL)
        session.record_rep(_rep(95, number=1))
        session.record_rep(_rep(85, [depth], number=2))
        session.record_rep(_rep(80, [depth, lean], number=3))
        session.record_rep(_rep(75, [depth], number=1))
        session.record_rep(_rep(70, number=2))
        session.record_rep(_rep(60, [lean], number=3))

        summary = build_session_summary(session.state)
        assert summary.final_phase == SessionPhase.COMPLETED
        assert summary.exercise_name == "Squat"
        assert summary.completed_sets == 2
        assert summary.total_reps == 6
        assert summary.average_score == pytest.approx(77.5)
        assert summary.best_set_score == pytest.approx(260 / 3)
        assert [i.issue_type for i in summary.top_issues] == [
            "insufficient_depth", "excessive_forward_lean"]
        assert summary.top_issues[0].rep_count == 3
        assert summary.fatigue_detected
        assert any(line.startswith("Safety first") for line in summary.feedback)

    def test_empty_session(self):
        session = _active_session()
        session.finish()
        summary = build_session_summary(session.state)
        assert summary.total_reps == 0
        assert summary.average_score == 0.0
        assert summary.best_set_score is None
        assert summary.ended_early
        assert summary.feedback == ["No complete reps were recorded in this session."]

    def test_summary_serializes(self):
        session = _active_session(target_sets=1)
        for i in range(3):
            session.record_rep(_rep(90, number=i + 1))
        data = build_session_summary(session.state).model_dump(mode="json")
        assert data["exercise_type"] == "squat"
        assert data["final_phase"] == "completed"
        assert len(data["sets"]) == 1


class TestGenerateFeedback:

    def test_tiers(self):
        assert generate_feedback([95.0], [], 95.0)[0].startswith("Excellent form")
        assert generate_feedback([75.0], [], 75.0)[0].startswith("Good form")
        assert "room for improvement" in generate_feedback([55.0], [], 55.0)[0]
        assert generate_feedback([30.0], [], 30.0)[0].startswith("Your form needs attention")

    def test_focus_issue(self):
        issue = IssueFrequency(issue_type="heel_lift_left", message="Your left heel is lifting",
                               priority=FeedbackPriority.MEDIUM, rep_count=4)
        lines = generate_feedback([80.0] * 4, [issue], 80.0)
        assert "your left heel is lifting (4 reps)" in lines[1]

    def test_no_fatigue_when_steady(self):
        lines = generate_feedback([85.0] * 8, [], 85.0)
        assert not any(line.startswith("Fatigue") for line in lines)

    def test_fatigue_needs_six_reps(self):
        lines = generate_feedback([95.0, 95.0, 60.0, 60.0], [], 77.5)
        assert not any(line.startswith("Fatigue") for line in lines)
