"""
Enrollment State Machine

Status transitions:
    active    -> completed | expired | cancelled | suspended
    suspended -> active | cancelled
    completed, expired, cancelled are terminal

Expiry is derived lazily: an active, non-self-paced enrollment whose
expiry date has passed is treated as expired whenever it is read, with no
background job involved.
"""
import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from coursehub.exceptions import AlreadyCompletedError, InvalidTransitionError
from coursehub.models.enrollment import DEFAULT_COMPLETION_CRITERIA
from coursehub.services.progress_aggregator import (
    ProgressState,
    all_assignments_graded,
    all_quizzes_passed,
)
from coursehub.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

ENROLLMENT_STATUSES = ("active", "completed", "expired", "cancelled", "suspended")
TERMINAL_STATUSES = frozenset({"completed", "expired", "cancelled"})
ACCESS_STATUSES = frozenset({"active", "completed"})

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "active": frozenset({"completed", "expired", "cancelled", "suspended"}),
    "suspended": frozenset({"active", "cancelled"}),
    "completed": frozenset(),
    "expired": frozenset(),
    "cancelled": frozenset(),
}


def _now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now else utcnow()


def is_expired(enrollment, now: Optional[datetime] = None) -> bool:
    """True when an active, expiring enrollment is past its expiry date"""
    if enrollment.status == "expired":
        return True
    if enrollment.status != "active" or enrollment.is_self_paced or enrollment.expiry_date is None:
        return False
    return _now(now) > ensure_utc(enrollment.expiry_date)


def effective_status(enrollment, now: Optional[datetime] = None) -> str:
    """Stored status with lazy expiry applied"""
    if enrollment.status == "active" and is_expired(enrollment, now):
        return "expired"
    return enrollment.status


def can_access(enrollment, now: Optional[datetime] = None) -> bool:
    """
    Whether the enrollment currently grants course access.

    Re-derives expiry from the dates instead of trusting the stored status.
    """
    return effective_status(enrollment, now) in ACCESS_STATUSES


def apply_lazy_expiry(enrollment, now: Optional[datetime] = None) -> bool:
    """
    Persist the expired status on read.

    Returns:
        True if the enrollment just transitioned to expired
    """
    if enrollment.status == "active" and is_expired(enrollment, now):
        enrollment.status = "expired"
        logger.info(f"Enrollment {enrollment.id} expired on read (expiry_date={enrollment.expiry_date})")
        return True
    return False


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(enrollment, target: str, now: Optional[datetime] = None) -> str:
    """
    Validate a status change without applying it.

    Returns:
        The effective current status

    Raises:
        InvalidTransitionError: Unknown status or transition not allowed
    """
    if target not in ENROLLMENT_STATUSES:
        raise InvalidTransitionError(f"Invalid status: {target}. Must be one of: {ENROLLMENT_STATUSES}")

    current = effective_status(enrollment, now)
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot change enrollment status from '{current}' to '{target}'",
            details={"from": current, "to": target},
        )
    return current


def transition(enrollment, target: str, now: Optional[datetime] = None) -> None:
    """
    Move an enrollment to `target`.

    Raises:
        InvalidTransitionError: Unknown status or transition not allowed
    """
    if effective_status(enrollment, now) != enrollment.status:
        # Lazily expired records cannot move anywhere
        enrollment.status = "expired"

    current = check_transition(enrollment, target, now)

    if target == "completed":
        enrollment.is_completed = True
        enrollment.completed_on = _now(now)

    enrollment.status = target
    logger.debug(f"Enrollment {enrollment.id}: {current} -> {target}")


def mark_completed(enrollment, now: Optional[datetime] = None) -> None:
    """
    Explicit completion.

    Raises:
        AlreadyCompletedError: Enrollment is already completed
        InvalidTransitionError: Enrollment is not active
    """
    if enrollment.is_completed or enrollment.status == "completed":
        raise AlreadyCompletedError(
            "Course already completed",
            details={"completed_on": enrollment.completed_on.isoformat() if enrollment.completed_on else None},
        )
    transition(enrollment, "completed", now)


def completion_criteria(enrollment) -> dict:
    criteria = dict(DEFAULT_COMPLETION_CRITERIA)
    criteria.update(enrollment.completion_criteria or {})
    return criteria


def completion_criteria_met(enrollment, progress: ProgressState) -> bool:
    """
    Check the enrollment's completion criteria against its progress.

    Requires overall progress >= required_progress, and, when flagged,
    every assignment graded and every quiz passed.
    """
    criteria = completion_criteria(enrollment)

    if progress.overall_progress < criteria["required_progress"]:
        return False
    if criteria["required_assignments"] and not all_assignments_graded(progress):
        return False
    if criteria["required_quizzes"] and not all_quizzes_passed(progress):
        return False
    return True


def completion_status(enrollment, now: Optional[datetime] = None) -> str:
    """Learner-facing summary: completed, expired, in_progress or not_started"""
    if enrollment.is_completed:
        return "completed"
    if is_expired(enrollment, now):
        return "expired"
    if (enrollment.progress or 0) > 0:
        return "in_progress"
    return "not_started"


def remaining_days(enrollment, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days of access left; None for self-paced enrollments"""
    if enrollment.is_self_paced or enrollment.expiry_date is None:
        return None
    delta = ensure_utc(enrollment.expiry_date) - _now(now)
    return max(delta.days, 0)
