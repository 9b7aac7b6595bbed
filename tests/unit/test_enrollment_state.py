"""
Unit tests for the enrollment state machine

Tests lazy expiry, access decisions, allowed transitions, completion
criteria and learner-facing status summaries.
"""

import uuid
import pytest
from datetime import datetime, timedelta, timezone

from coursehub.exceptions import AlreadyCompletedError, InvalidTransitionError
from coursehub.models import DEFAULT_COMPLETION_CRITERIA, Enrollment
from coursehub.services import enrollment_state
from coursehub.services.progress_aggregator import (
    AssignmentProgress,
    ProgressState,
    QuizProgress,
)

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


def make_enrollment(**overrides) -> Enrollment:
    fields = dict(
        id=uuid.uuid4(),
        student_id="student-1",
        course_id="course-1",
        status="active",
        is_self_paced=False,
        expiry_date=NOW + timedelta(days=30),
        is_completed=False,
        completed_on=None,
        progress=0,
        completion_criteria=dict(DEFAULT_COMPLETION_CRITERIA),
    )
    fields.update(overrides)
    return Enrollment(**fields)


class TestLazyExpiry:
    """Test expiry derived at read time"""

    def test_active_before_expiry(self):
        enrollment = make_enrollment()

        assert not enrollment_state.is_expired(enrollment, NOW)
        assert enrollment_state.effective_status(enrollment, NOW) == "active"
        assert enrollment_state.can_access(enrollment, NOW)

    def test_expired_once_past_expiry_date(self):
        """Test stored status 'active' is reported as expired after the expiry date"""
        enrollment = make_enrollment(expiry_date=NOW - timedelta(seconds=1))

        assert enrollment_state.effective_status(enrollment, NOW) == "expired"
        assert not enrollment_state.can_access(enrollment, NOW)
        # Read-only helpers leave the stored status alone
        assert enrollment.status == "active"

    def test_self_paced_never_expires(self):
        enrollment = make_enrollment(is_self_paced=True, expiry_date=None)

        assert enrollment_state.can_access(enrollment, NOW + timedelta(days=3650))
        assert enrollment_state.remaining_days(enrollment, NOW) is None

    def test_naive_expiry_date_is_compared_as_utc(self):
        """Test naive datetimes read back from the database still compare"""
        enrollment = make_enrollment(expiry_date=datetime(2026, 5, 31))

        assert enrollment_state.is_expired(enrollment, NOW)

    def test_apply_lazy_expiry_reports_transition_once(self):
        enrollment = make_enrollment(expiry_date=NOW - timedelta(days=1))

        assert enrollment_state.apply_lazy_expiry(enrollment, NOW) is True
        assert enrollment.status == "expired"
        assert enrollment_state.apply_lazy_expiry(enrollment, NOW) is False

    def test_completed_enrollment_keeps_access(self):
        """Test completion is not undone by a later expiry date"""
        enrollment = make_enrollment(
            status="completed",
            is_completed=True,
            expiry_date=NOW - timedelta(days=10),
        )

        assert enrollment_state.can_access(enrollment, NOW)
        assert enrollment_state.apply_lazy_expiry(enrollment, NOW) is False

    @pytest.mark.parametrize("status", ["suspended", "cancelled", "expired"])
    def test_no_access_for_other_statuses(self, status):
        assert not enrollment_state.can_access(make_enrollment(status=status), NOW)


class TestTransitions:
    """Test the status transition table"""

    @pytest.mark.parametrize("target", ["completed", "expired", "cancelled", "suspended"])
    def test_active_can_move_to(self, target):
        assert enrollment_state.can_transition("active", target)

    def test_suspended_can_resume_or_cancel(self):
        assert enrollment_state.can_transition("suspended", "active")
        assert enrollment_state.can_transition("suspended", "cancelled")
        assert not enrollment_state.can_transition("suspended", "completed")

    @pytest.mark.parametrize("terminal", ["completed", "expired", "cancelled"])
    def test_terminal_statuses(self, terminal):
        enrollment = make_enrollment(status=terminal)

        with pytest.raises(InvalidTransitionError):
            enrollment_state.transition(enrollment, "active", NOW)

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidTransitionError, match="Invalid status"):
            enrollment_state.transition(make_enrollment(), "archived", NOW)

    def test_lazily_expired_enrollment_cannot_be_suspended(self):
        enrollment = make_enrollment(expiry_date=NOW - timedelta(days=1))

        with pytest.raises(InvalidTransitionError):
            enrollment_state.transition(enrollment, "suspended", NOW)
        assert enrollment.status == "expired"

    def test_completion_stamps_completed_on(self):
        enrollment = make_enrollment()

        enrollment_state.transition(enrollment, "completed", NOW)

        assert enrollment.status == "completed"
        assert enrollment.is_completed is True
        assert enrollment.completed_on == NOW

    def test_mark_completed_twice(self):
        enrollment = make_enrollment()
        enrollment_state.mark_completed(enrollment, NOW)

        with pytest.raises(AlreadyCompletedError):
            enrollment_state.mark_completed(enrollment, NOW)


class TestCompletionCriteria:
    """Test criteria-based completion checks"""

    def test_defaults_require_full_progress(self):
        enrollment = make_enrollment(completion_criteria=None)

        assert enrollment_state.completion_criteria(enrollment) == DEFAULT_COMPLETION_CRITERIA
        assert not enrollment_state.completion_criteria_met(enrollment, ProgressState(overall_progress=99))
        assert enrollment_state.completion_criteria_met(enrollment, ProgressState(overall_progress=100))

    def test_lower_threshold_with_pending_quiz(self):
        enrollment = make_enrollment(completion_criteria={
            "required_progress": 60,
            "required_assignments": False,
            "required_quizzes": True,
        })
        progress = ProgressState(
            overall_progress=70,
            quizzes=[QuizProgress(quiz_id="Q1", status="failed")],
            assignments=[AssignmentProgress(assignment_id="A1", status="submitted")],
        )

        assert not enrollment_state.completion_criteria_met(enrollment, progress)

        progress.quizzes[0].status = "completed"
        assert enrollment_state.completion_criteria_met(enrollment, progress)


class TestStatusSummary:
    """Test completion status and remaining days"""

    def test_completion_status_values(self):
        assert enrollment_state.completion_status(make_enrollment(), NOW) == "not_started"
        assert enrollment_state.completion_status(make_enrollment(progress=40), NOW) == "in_progress"
        assert enrollment_state.completion_status(make_enrollment(is_completed=True), NOW) == "completed"
        expired = make_enrollment(expiry_date=NOW - timedelta(days=1))
        assert enrollment_state.completion_status(expired, NOW) == "expired"

    def test_remaining_days(self):
        assert enrollment_state.remaining_days(make_enrollment(), NOW) == 30
        expired = make_enrollment(expiry_date=NOW - timedelta(days=3))
        assert enrollment_state.remaining_days(expired, NOW) == 0
