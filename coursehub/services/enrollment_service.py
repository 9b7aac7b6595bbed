"""
Enrollment Orchestrator

Coordinates enrollment creation (dedup, payment capture, EMI setup, module
materialization), updates, deletion and the status-changing events
(explicit completion, video watches, suspend/resume/cancel).

Creation is a two-step write: the enrollment is committed first, then the
course's modules are bulk-inserted. A module failure is logged and reported
on the result but never rolls the enrollment back.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.exceptions import (
    DuplicateEnrollmentError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from coursehub.models import DEFAULT_COMPLETION_CRITERIA, EnrolledModule, Enrollment, Progress
from coursehub.services import emi_calculator, enrollment_state
from coursehub.services.catalog import CourseRepo, UserRepo
from coursehub.services.events import (
    EnrollmentCompleted,
    EnrollmentCreated,
    EnrollmentExpired,
    EventPublisher,
    get_event_publisher,
)
from coursehub.timeutils import add_months, ensure_utc, parse_datetime, utcnow

logger = logging.getLogger(__name__)

ENROLLMENT_TYPES = ("individual", "batch")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
LEARNING_PATHS = ("sequential", "flexible")

DEFAULT_ACCESS_MONTHS = 12
DEFAULT_CURRENCY = "INR"
DEFAULT_PAYMENT_METHOD = "razorpay"

UPDATABLE_FIELDS = frozenset({
    "enrollment_type",
    "batch_size",
    "payment_status",
    "is_self_paced",
    "expiry_date",
    "learning_path",
    "completion_criteria",
    "status",
    "is_completed",
    "source_info",
})
IMMUTABLE_FIELDS = frozenset({"student_id", "course_id"})


@dataclass
class EnrollmentOptions:
    """Optional parameters of an enrollment request"""
    enrollment_type: str = "individual"
    is_self_paced: bool = False
    expiry_date: Optional[datetime] = None
    payment_status: Optional[str] = None
    # Already-verified payment confirmation (payment_id, order_id, signature, method, amount, currency)
    payment: Optional[Dict[str, Any]] = None
    is_emi: bool = False
    emi_config: Optional[Dict[str, Any]] = None
    learning_path: str = "sequential"
    completion_criteria: Optional[Dict[str, Any]] = None
    source_info: Optional[Dict[str, Any]] = None


@dataclass
class EnrollmentCreation:
    """Result of create_enrollment"""
    enrollment: Enrollment
    modules: List[EnrolledModule] = field(default_factory=list)
    module_error: Optional[str] = None

    @property
    def modules_created(self) -> int:
        return len(self.modules)


@dataclass
class EnrollmentPage:
    """One page of a listing plus the number of matching rows"""
    enrollments: List[Enrollment]
    total: int
    limit: int
    offset: int

    def by_student(self) -> List[Dict[str, Any]]:
        """Group the page by student, in the order students first appear"""
        groups: Dict[str, List[Enrollment]] = {}
        for enrollment in self.enrollments:
            groups.setdefault(enrollment.student_id, []).append(enrollment)
        return [{"student_id": student_id, "enrollments": items} for student_id, items in groups.items()]


def _require_choice(name: str, value: str, choices: tuple) -> None:
    if value not in choices:
        raise InvalidInputError(f"Invalid {name}: {value}. Must be one of: {choices}")


def _merge_completion_criteria(criteria: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = dict(DEFAULT_COMPLETION_CRITERIA)
    if criteria:
        unknown = set(criteria) - set(DEFAULT_COMPLETION_CRITERIA)
        if unknown:
            raise InvalidInputError(f"Unknown completion criteria: {sorted(unknown)}")
        merged.update(criteria)

    required_progress = merged["required_progress"]
    if not isinstance(required_progress, (int, float)) or not 0 <= required_progress <= 100:
        raise InvalidInputError("required_progress must be between 0 and 100")
    return merged


def build_payment_details(payment: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Shape opaque payment confirmation data into the stored payment_details"""
    amount = payment.get("amount") or 0
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidInputError("Payment amount must be a number", details={"amount": repr(amount)})
    if amount < 0:
        raise InvalidInputError("Payment amount cannot be negative")

    return {
        "payment_id": payment.get("payment_id") or "",
        "payment_order_id": payment.get("order_id") or "",
        "payment_signature": payment.get("signature") or "",
        "payment_method": payment.get("method") or DEFAULT_PAYMENT_METHOD,
        "amount": amount,
        "currency": (payment.get("currency") or DEFAULT_CURRENCY).upper(),
        "payment_date": now.isoformat(),
    }


def build_emi_schedule(
    emi_config: Optional[Dict[str, Any]],
    payment_details: Optional[Dict[str, Any]],
    now: datetime,
) -> emi_calculator.EmiSchedule:
    """
    Run the amortization engine for an enrollment request.

    totalAmount falls back to the captured payment amount, startDate to now
    and gracePeriodDays to the standard grace period.
    """
    if not emi_config:
        raise InvalidInputError("emi_config is required for EMI enrollments")

    total_amount = emi_config.get("totalAmount")
    if total_amount is None and payment_details:
        total_amount = payment_details.get("amount")
    if total_amount is None:
        raise InvalidInputError("EMI totalAmount is required when no payment amount is available")

    if emi_config.get("numberOfInstallments") is None:
        raise InvalidInputError("EMI numberOfInstallments is required")

    grace_period_days = emi_config.get("gracePeriodDays")
    if grace_period_days is None:
        grace_period_days = emi_calculator.DEFAULT_GRACE_PERIOD_DAYS

    try:
        start_date = parse_datetime(emi_config.get("startDate"))
    except (TypeError, ValueError) as e:
        raise InvalidInputError(
            "EMI startDate must be an ISO 8601 datetime",
            details={"startDate": repr(emi_config.get("startDate"))},
        ) from e

    # compute_schedule rejects non-numeric values with InvalidInputError
    return emi_calculator.compute_schedule(
        total_amount=total_amount,
        down_payment=emi_config.get("downPayment") or 0,
        number_of_installments=emi_config["numberOfInstallments"],
        start_date=start_date or now,
        interest_rate=emi_config.get("interestRate") or 0,
        processing_fee=emi_config.get("processingFee") or 0,
        grace_period_days=grace_period_days,
    )


class EnrollmentService:
    """
    Enrollment lifecycle operations over one database session.

    Collaborators are passed in: the user and course repositories, and the
    event publisher used for lifecycle events.
    """

    def __init__(
        self,
        session: AsyncSession,
        users: UserRepo,
        courses: CourseRepo,
        events: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.users = users
        self.courses = courses
        self.events = events or get_event_publisher()
        self.clock = clock

    # ==================== CREATION ====================

    async def create_enrollment(
        self,
        student_id: str,
        course_id: str,
        options: Optional[EnrollmentOptions] = None,
    ) -> EnrollmentCreation:
        """
        Enroll a student in a course.

        Raises:
            InvalidInputError: Missing ids, bad enums, bad EMI parameters
            NotFoundError: Unknown student or course
            DuplicateEnrollmentError: Pair already enrolled
        """
        options = options or EnrollmentOptions()
        now = self.clock()

        if not student_id or not course_id:
            raise InvalidInputError("Student ID and Course ID are required")
        _require_choice("enrollment_type", options.enrollment_type, ENROLLMENT_TYPES)
        _require_choice("learning_path", options.learning_path, LEARNING_PATHS)
        if options.payment_status is not None:
            _require_choice("payment_status", options.payment_status, PAYMENT_STATUSES)
        completion_criteria = _merge_completion_criteria(options.completion_criteria)

        if not await self.users.exists(student_id):
            raise NotFoundError(f"Student {student_id} not found", details={"student_id": student_id})
        course = await self.courses.get(course_id)

        # Fast path only; the unique constraint is the real guard
        if await self._find_by_pair(student_id, course_id) is not None:
            raise DuplicateEnrollmentError(
                "Student is already enrolled in this course",
                details={"student_id": student_id, "course_id": course_id},
            )

        batch_size = course.min_batch_size if options.enrollment_type == "batch" else 1
        if batch_size < 1:
            raise InvalidInputError(f"Invalid batch size {batch_size} for course {course_id}")

        if options.is_self_paced:
            expiry_date = None
        elif options.expiry_date is not None:
            expiry_date = ensure_utc(options.expiry_date)
        else:
            expiry_date = add_months(now, DEFAULT_ACCESS_MONTHS)

        payment_details = build_payment_details(options.payment, now) if options.payment else None
        payment_status = options.payment_status or ("completed" if payment_details else "pending")

        emi_details = None
        if options.is_emi:
            emi_details = build_emi_schedule(options.emi_config, payment_details, now).to_dict()

        enrollment = Enrollment(
            id=uuid.uuid4(),
            student_id=student_id,
            course_id=course_id,
            enrollment_type=options.enrollment_type,
            batch_size=batch_size,
            payment_status=payment_status,
            payment_type="emi" if options.is_emi else "full",
            payment_details=payment_details,
            emi_details=emi_details,
            status="active",
            enrollment_date=now,
            is_self_paced=options.is_self_paced,
            expiry_date=expiry_date,
            is_completed=False,
            completed_on=None,
            progress=0,
            learning_path=options.learning_path,
            completion_criteria=completion_criteria,
            source_info=options.source_info,
            last_accessed=now,
        )

        self.session.add(enrollment)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Duplicate enrollment rejected by store for {student_id}/{course_id}: {e.orig}")
            raise DuplicateEnrollmentError(
                "Student is already enrolled in this course",
                details={"student_id": student_id, "course_id": course_id},
            ) from e

        logger.info(
            f"Enrollment created: {enrollment.id} student={student_id} course={course_id} "
            f"type={enrollment.enrollment_type} payment={enrollment.payment_type}"
        )

        creation = EnrollmentCreation(enrollment=enrollment)
        if course.video_content_urls:
            await self._materialize_modules(creation, course.video_content_urls)

        await self.events.publish(EnrollmentCreated(
            enrollment_id=str(enrollment.id),
            student_id=student_id,
            course_id=course_id,
            payment_type=enrollment.payment_type,
        ))

        return creation

    async def _materialize_modules(self, creation: EnrollmentCreation, video_urls: List[str]) -> None:
        """Bulk-create one module per video; failures are reported, not raised"""
        enrollment = creation.enrollment
        modules = [
            EnrolledModule(
                id=uuid.uuid4(),
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                enrollment_id=enrollment.id,
                video_url=url,
                is_watched=False,
            )
            for url in video_urls
        ]

        try:
            self.session.add_all(modules)
            await self.session.commit()
            creation.modules = modules
            logger.info(f"Created {len(modules)} modules for enrollment {enrollment.id}")
        except SQLAlchemyError as e:
            await self.session.rollback()
            await self.session.refresh(enrollment)
            creation.module_error = f"Module creation failed: {e}"
            logger.error(
                f"Enrollment {enrollment.id} persisted but module creation failed: {e}",
                exc_info=True,
            )

    # ==================== READS ====================

    async def _find_by_pair(self, student_id: str, course_id: str) -> Optional[Enrollment]:
        result = await self.session.execute(
            select(Enrollment).where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course_id,
            )
        )
        return result.scalar_one_or_none()

    async def _apply_expiry(self, enrollments: List[Enrollment]) -> None:
        """Persist lazily derived expiry and announce it once"""
        now = self.clock()
        expired = [e for e in enrollments if enrollment_state.apply_lazy_expiry(e, now)]
        if not expired:
            return

        await self.session.commit()
        for enrollment in expired:
            await self.events.publish(EnrollmentExpired(
                enrollment_id=str(enrollment.id),
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                expiry_date=ensure_utc(enrollment.expiry_date).isoformat(),
            ))

    async def get_enrollment(self, enrollment_id: uuid.UUID) -> Enrollment:
        enrollment = await self.session.get(Enrollment, enrollment_id)
        if enrollment is None:
            raise NotFoundError(f"Enrollment {enrollment_id} not found")
        await self._apply_expiry([enrollment])
        return enrollment

    async def get_enrollment_by_pair(self, student_id: str, course_id: str) -> Enrollment:
        enrollment = await self._find_by_pair(student_id, course_id)
        if enrollment is None:
            raise NotFoundError(
                "Enrollment not found",
                details={"student_id": student_id, "course_id": course_id},
            )
        await self._apply_expiry([enrollment])
        return enrollment

    async def _expire_due(self, criteria: List[Any]) -> None:
        """Persist lazy expiry for the matching rows so SQL status filters see it"""
        result = await self.session.execute(
            select(Enrollment).where(
                *criteria,
                Enrollment.status == "active",
                Enrollment.is_self_paced.is_(False),
                Enrollment.expiry_date.is_not(None),
                Enrollment.expiry_date < self.clock(),
            )
        )
        await self._apply_expiry(list(result.scalars().all()))

    async def _page(
        self,
        criteria: List[Any],
        status: Optional[str],
        include_expired: bool,
        limit: int,
        offset: int,
    ) -> EnrollmentPage:
        if status is not None:
            _require_choice("status", status, enrollment_state.ENROLLMENT_STATUSES)
        if limit < 1 or offset < 0:
            raise InvalidInputError("limit must be at least 1 and offset cannot be negative")

        await self._expire_due(criteria)

        criteria = list(criteria)
        if status is not None:
            criteria.append(Enrollment.status == status)
        elif not include_expired:
            criteria.append(Enrollment.status != "expired")

        total = (await self.session.execute(
            select(func.count()).select_from(Enrollment).where(*criteria)
        )).scalar_one()
        result = await self.session.execute(
            select(Enrollment)
            .where(*criteria)
            .order_by(Enrollment.enrollment_date.desc(), Enrollment.id)
            .limit(limit)
            .offset(offset)
        )
        return EnrollmentPage(list(result.scalars().all()), total=total, limit=limit, offset=offset)

    async def get_enrollments_by_student(
        self,
        student_id: str,
        status: Optional[str] = None,
        include_expired: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Enrollment]:
        """Student's enrollments, newest first; expired ones hidden unless asked for"""
        page = await self._page([Enrollment.student_id == student_id], status, include_expired, limit, offset)
        return page.enrollments

    async def get_enrollments_by_course(
        self,
        course_id: str,
        status: Optional[str] = None,
        include_expired: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Enrollment]:
        """Course roster, newest first; expired ones hidden unless asked for"""
        page = await self._page([Enrollment.course_id == course_id], status, include_expired, limit, offset)
        return page.enrollments

    async def list_enrollments(
        self,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        enrollment_type: Optional[str] = None,
        include_expired: bool = True,
        limit: int = 10,
        offset: int = 0,
    ) -> EnrollmentPage:
        """
        Admin listing across all students and courses, newest first.

        Expired enrollments are included by default; the filters combine.
        """
        criteria = []
        if payment_status is not None:
            _require_choice("payment_status", payment_status, PAYMENT_STATUSES)
            criteria.append(Enrollment.payment_status == payment_status)
        if enrollment_type is not None:
            _require_choice("enrollment_type", enrollment_type, ENROLLMENT_TYPES)
            criteria.append(Enrollment.enrollment_type == enrollment_type)
        return await self._page(criteria, status, include_expired, limit, offset)

    async def get_students_with_enrollments(
        self,
        status: Optional[str] = None,
        include_expired: bool = False,
        limit: int = 10,
        offset: int = 0,
    ) -> EnrollmentPage:
        """
        One page of enrollments for grouping by student.

        Pagination counts enrollments, not students, so a student can span
        two pages. Use EnrollmentPage.by_student() for the grouped view.
        """
        return await self._page([], status, include_expired, limit, offset)

    async def get_enrollment_counts_by_student(self, student_id: str) -> Dict[str, int]:
        """Totals per effective status plus pending payments"""
        criteria = [Enrollment.student_id == student_id]
        await self._expire_due(criteria)

        result = await self.session.execute(
            select(
                func.count(),
                func.count().filter(Enrollment.payment_status == "pending"),
            ).select_from(Enrollment).where(*criteria)
        )
        total, pending = result.one()
        counts = {
            "total": total,
            "active": 0,
            "completed": 0,
            "pending": pending,
            "cancelled": 0,
            "expired": 0,
            "suspended": 0,
        }

        by_status = await self.session.execute(
            select(Enrollment.status, func.count()).where(*criteria).group_by(Enrollment.status)
        )
        for status, count in by_status.all():
            counts[status] = count
        return counts

    async def check_access(self, enrollment_id: uuid.UUID) -> Dict[str, Any]:
        enrollment = await self.get_enrollment(enrollment_id)
        now = self.clock()
        return {
            "enrollment_id": str(enrollment.id),
            "can_access": enrollment_state.can_access(enrollment, now),
            "status": enrollment_state.effective_status(enrollment, now),
            "completion_status": enrollment_state.completion_status(enrollment, now),
            "remaining_days": enrollment_state.remaining_days(enrollment, now),
        }

    async def get_modules(self, enrollment_id: uuid.UUID) -> List[EnrolledModule]:
        await self.get_enrollment(enrollment_id)
        result = await self.session.execute(
            select(EnrolledModule)
            .where(EnrolledModule.enrollment_id == enrollment_id)
            .order_by(EnrolledModule.created_at)
        )
        return list(result.scalars().all())

    # ==================== UPDATES ====================

    async def update_enrollment(self, enrollment_id: uuid.UUID, updates: Dict[str, Any]) -> Enrollment:
        """
        Apply a partial update.

        student_id and course_id are immutable: re-pointing an enrollment is
        a new enrollment, not an update. Status changes go through the state
        machine; `is_completed=True` is the explicit completion action. Every
        field is validated before anything is written.
        """
        enrollment = await self.get_enrollment(enrollment_id)
        now = self.clock()

        for name in IMMUTABLE_FIELDS & set(updates):
            if updates[name] != getattr(enrollment, name):
                raise InvalidInputError(
                    f"{name} cannot be changed after creation; create a new enrollment instead",
                    details={name: getattr(enrollment, name)},
                )

        unknown = set(updates) - UPDATABLE_FIELDS - IMMUTABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields cannot be updated: {sorted(unknown)}")

        changes: Dict[str, Any] = {}
        if "enrollment_type" in updates:
            _require_choice("enrollment_type", updates["enrollment_type"], ENROLLMENT_TYPES)
            changes["enrollment_type"] = updates["enrollment_type"]
        if "batch_size" in updates:
            batch_size = updates["batch_size"]
            if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
                raise InvalidInputError("Batch size must be at least 1")
            changes["batch_size"] = batch_size
        if "payment_status" in updates:
            _require_choice("payment_status", updates["payment_status"], PAYMENT_STATUSES)
            changes["payment_status"] = updates["payment_status"]
        if "learning_path" in updates:
            _require_choice("learning_path", updates["learning_path"], LEARNING_PATHS)
            changes["learning_path"] = updates["learning_path"]
        if "completion_criteria" in updates:
            criteria = dict(enrollment_state.completion_criteria(enrollment))
            criteria.update(updates["completion_criteria"] or {})
            changes["completion_criteria"] = _merge_completion_criteria(criteria)
        if "source_info" in updates:
            changes["source_info"] = updates["source_info"]

        is_self_paced = enrollment.is_self_paced
        if updates.get("is_self_paced") is not None:
            is_self_paced = bool(updates["is_self_paced"])
        expiry_date = parse_datetime(updates["expiry_date"]) if "expiry_date" in updates else enrollment.expiry_date
        if is_self_paced:
            expiry_date = None
        elif expiry_date is None:
            raise InvalidInputError("expiry_date is required unless the enrollment is self-paced")
        changes["is_self_paced"] = is_self_paced
        changes["expiry_date"] = expiry_date

        if updates.get("is_completed") is False and enrollment.is_completed:
            raise InvalidInputError("A completed enrollment cannot be reopened")

        # status="completed" and is_completed=True are the same completion action
        complete = not enrollment.is_completed and (
            updates.get("is_completed") is True or updates.get("status") == "completed"
        )
        target = updates.get("status")
        if target in (None, "completed", enrollment.status):
            target = None
        if complete and target is not None:
            raise InvalidInputError("Completion cannot be combined with another status change")
        if complete or target is not None:
            enrollment_state.check_transition(enrollment, "completed" if complete else target, now)

        for name, value in changes.items():
            setattr(enrollment, name, value)

        if complete:
            enrollment_state.mark_completed(enrollment, now)
        elif target is not None:
            enrollment_state.transition(enrollment, target, now)

        await self.session.commit()
        logger.info(f"Enrollment updated: {enrollment.id} fields={sorted(updates)}")

        if complete:
            await self._publish_completed(enrollment, trigger="explicit")
        return enrollment

    async def delete_enrollment(self, enrollment_id: uuid.UUID) -> Dict[str, int]:
        """Delete an enrollment together with its modules and progress"""
        enrollment = await self.session.get(Enrollment, enrollment_id)
        if enrollment is None:
            raise NotFoundError(f"Enrollment {enrollment_id} not found")

        modules = await self.session.execute(
            delete(EnrolledModule).where(EnrolledModule.enrollment_id == enrollment_id)
        )
        progress = await self.session.execute(
            delete(Progress).where(Progress.enrollment_id == enrollment_id)
        )
        await self.session.delete(enrollment)
        await self.session.commit()

        logger.info(
            f"Enrollment deleted: {enrollment_id} "
            f"(modules={modules.rowcount}, progress={progress.rowcount})"
        )
        return {"modules_deleted": modules.rowcount, "progress_deleted": progress.rowcount}

    # ==================== STATUS CHANGES ====================

    async def _publish_completed(self, enrollment: Enrollment, trigger: str) -> None:
        await self.events.publish(EnrollmentCompleted(
            enrollment_id=str(enrollment.id),
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            trigger=trigger,
        ))

    async def mark_completed(self, student_id: str, course_id: str) -> Enrollment:
        """
        Explicitly complete the enrollment for a pair.

        Raises:
            NotFoundError: No enrollment for the pair
            AlreadyCompletedError: Already completed (no state change)
        """
        enrollment = await self.get_enrollment_by_pair(student_id, course_id)
        enrollment_state.mark_completed(enrollment, self.clock())
        await self.session.commit()

        logger.info(f"Enrollment {enrollment.id} marked completed")
        await self._publish_completed(enrollment, trigger="explicit")
        return enrollment

    async def _change_status(self, enrollment_id: uuid.UUID, target: str) -> Enrollment:
        enrollment = await self.get_enrollment(enrollment_id)
        enrollment_state.transition(enrollment, target, self.clock())
        await self.session.commit()
        logger.info(f"Enrollment {enrollment.id} is now {target}")
        return enrollment

    async def suspend(self, enrollment_id: uuid.UUID) -> Enrollment:
        return await self._change_status(enrollment_id, "suspended")

    async def resume(self, enrollment_id: uuid.UUID) -> Enrollment:
        return await self._change_status(enrollment_id, "active")

    async def cancel(self, enrollment_id: uuid.UUID) -> Enrollment:
        return await self._change_status(enrollment_id, "cancelled")

    async def complete_if_criteria_met(self, enrollment: Enrollment, progress) -> bool:
        """
        Criteria-based completion after a progress change.

        Returns:
            True if the enrollment transitioned to completed
        """
        if enrollment.status != "active" or enrollment.is_completed:
            return False
        if not enrollment_state.completion_criteria_met(enrollment, progress):
            return False

        enrollment_state.transition(enrollment, "completed", self.clock())
        await self.session.commit()
        logger.info(f"Enrollment {enrollment.id} completed: criteria met at {progress.overall_progress}%")
        await self._publish_completed(enrollment, trigger="criteria_met")
        return True

    async def watch_module(self, module_id: uuid.UUID, student_id: str) -> Dict[str, Any]:
        """
        Mark a module watched.

        When every module of the (student, course) pair is watched, the active
        enrollment completes; later redundant watches change nothing.

        Raises:
            NotFoundError: Unknown module
            UnauthorizedError: Module belongs to another student, or the
                enrollment no longer grants access
        """
        module = await self.session.get(EnrolledModule, module_id)
        if module is None:
            raise NotFoundError(f"Module {module_id} not found")
        if module.student_id != student_id:
            logger.warning(f"Student {student_id} tried to watch module {module_id} owned by {module.student_id}")
            raise UnauthorizedError("Module belongs to another student")

        enrollment = await self._find_by_pair(module.student_id, module.course_id)
        if enrollment is not None:
            await self._apply_expiry([enrollment])
            if not enrollment_state.can_access(enrollment, self.clock()):
                raise UnauthorizedError(
                    "Enrollment does not grant access",
                    details={"status": enrollment.status},
                )

        module.is_watched = True
        await self.session.flush()

        counts = await self.session.execute(
            select(
                func.count(EnrolledModule.id),
                func.count(EnrolledModule.id).filter(EnrolledModule.is_watched.is_(True)),
            ).where(
                EnrolledModule.student_id == module.student_id,
                EnrolledModule.course_id == module.course_id,
            )
        )
        total, watched = counts.one()

        completed = False
        if enrollment is not None and total > 0 and watched == total and not enrollment.is_completed:
            enrollment_state.transition(enrollment, "completed", self.clock())
            completed = True

        await self.session.commit()

        if completed:
            logger.info(f"Enrollment {enrollment.id} completed: all {total} modules watched")
            await self._publish_completed(enrollment, trigger="all_modules_watched")

        return {
            "module": module,
            "watched_modules": watched,
            "total_modules": total,
            "enrollment_completed": completed,
        }

    # ==================== EMI ====================

    def _load_schedule(self, enrollment: Enrollment) -> emi_calculator.EmiSchedule:
        if enrollment.payment_type != "emi" or not enrollment.emi_details:
            raise InvalidInputError("Enrollment is not on an EMI plan")
        return emi_calculator.EmiSchedule.from_dict(enrollment.emi_details)

    async def _save_schedule(self, enrollment: Enrollment, schedule: emi_calculator.EmiSchedule) -> None:
        enrollment.emi_details = schedule.to_dict()
        if schedule.status == "completed" and enrollment.payment_status == "pending":
            enrollment.payment_status = "completed"
        await self.session.commit()

    async def get_emi_schedule(self, enrollment_id: uuid.UUID) -> emi_calculator.EmiSchedule:
        """EMI schedule with missed payments assessed as of now"""
        enrollment = await self.get_enrollment(enrollment_id)
        schedule = self._load_schedule(enrollment)
        before = schedule.to_dict()

        emi_calculator.assess_schedule(schedule, self.clock())
        if schedule.to_dict() != before:
            await self._save_schedule(enrollment, schedule)
            logger.info(
                f"EMI schedule for {enrollment.id}: {schedule.missed_payments} missed, status={schedule.status}"
            )
        return schedule

    async def record_installment_payment(
        self,
        enrollment_id: uuid.UUID,
        installment_number: int,
        paid_at: Optional[datetime] = None,
    ) -> emi_calculator.EmiSchedule:
        """Hook for payment reconciliation: one installment has been paid"""
        enrollment = await self.get_enrollment(enrollment_id)
        schedule = self._load_schedule(enrollment)
        emi_calculator.assess_schedule(schedule, self.clock())
        emi_calculator.record_installment_payment(schedule, installment_number, paid_at or self.clock())
        await self._save_schedule(enrollment, schedule)
        logger.info(f"EMI installment {installment_number} paid for enrollment {enrollment.id}")
        return schedule

    async def waive_installment(self, enrollment_id: uuid.UUID, installment_number: int) -> emi_calculator.EmiSchedule:
        enrollment = await self.get_enrollment(enrollment_id)
        schedule = self._load_schedule(enrollment)
        emi_calculator.assess_schedule(schedule, self.clock())
        emi_calculator.waive_installment(schedule, installment_number)
        await self._save_schedule(enrollment, schedule)
        logger.info(f"EMI installment {installment_number} waived for enrollment {enrollment.id}")
        return schedule
