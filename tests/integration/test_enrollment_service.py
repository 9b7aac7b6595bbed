"""
Integration tests for EnrollmentService

Tests enrollment creation, deduplication, module materialization, lazy
expiry, updates, deletion, completion via watched modules and EMI
reconciliation against a real (SQLite) database.
"""

import uuid
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from coursehub.exceptions import (
    AlreadyCompletedError,
    DuplicateEnrollmentError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from coursehub.models import EnrolledModule, Enrollment
from coursehub.services.enrollment_service import EnrollmentOptions
from coursehub.timeutils import ensure_utc

pytestmark = pytest.mark.integration

EMI_CONFIG = {"totalAmount": 1200, "downPayment": 200, "numberOfInstallments": 5}


async def count_enrollments(session, student_id="student-1", course_id="course-video") -> int:
    result = await session.execute(
        select(func.count(Enrollment.id)).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
        )
    )
    return result.scalar_one()


class TestCreateEnrollment:
    """Test enrollment creation"""

    @pytest.mark.asyncio
    async def test_creates_enrollment_with_defaults(self, enrollment_service, clock, published):
        creation = await enrollment_service.create_enrollment("student-1", "course-empty")
        enrollment = creation.enrollment

        assert enrollment.status == "active"
        assert enrollment.enrollment_type == "individual"
        assert enrollment.batch_size == 1
        assert enrollment.payment_status == "pending"
        assert enrollment.payment_type == "full"
        assert enrollment.progress == 0
        assert enrollment.is_completed is False
        assert ensure_utc(enrollment.expiry_date) == datetime(2027, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert creation.modules_created == 0

        assert [e.event_type for e in published] == ["EnrollmentCreated"]
        assert published[0].enrollment_id == str(enrollment.id)

    @pytest.mark.asyncio
    async def test_materializes_one_module_per_video(self, enrollment_service, session):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")

        assert creation.modules_created == 3
        assert creation.module_error is None

        modules = await enrollment_service.get_modules(creation.enrollment.id)
        assert sorted(m.video_url for m in modules) == sorted([
            "https://videos.example.com/intro.mp4",
            "https://videos.example.com/basics.mp4",
            "https://videos.example.com/advanced.mp4",
        ])
        assert not any(m.is_watched for m in modules)

    @pytest.mark.asyncio
    async def test_self_paced_has_no_expiry(self, enrollment_service, clock):
        creation = await enrollment_service.create_enrollment(
            "student-1", "course-empty", EnrollmentOptions(is_self_paced=True)
        )

        assert creation.enrollment.expiry_date is None
        access = await enrollment_service.check_access(creation.enrollment.id)
        assert access["remaining_days"] is None

        clock.advance(days=3650)
        access = await enrollment_service.check_access(creation.enrollment.id)
        assert access["can_access"] is True

    @pytest.mark.asyncio
    async def test_batch_enrollment_uses_course_minimum(self, enrollment_service):
        creation = await enrollment_service.create_enrollment(
            "student-1", "course-batch", EnrollmentOptions(enrollment_type="batch")
        )

        assert creation.enrollment.batch_size == 4

    @pytest.mark.asyncio
    async def test_payment_data_marks_payment_completed(self, enrollment_service):
        creation = await enrollment_service.create_enrollment(
            "student-1",
            "course-empty",
            EnrollmentOptions(payment={"payment_id": "pay_1", "order_id": "order_1", "amount": 4999}),
        )

        enrollment = creation.enrollment
        assert enrollment.payment_status == "completed"
        assert enrollment.payment_details["payment_id"] == "pay_1"
        assert enrollment.payment_details["currency"] == "INR"
        assert enrollment.payment_details["payment_method"] == "razorpay"

    @pytest.mark.asyncio
    async def test_emi_enrollment_stores_schedule(self, enrollment_service):
        creation = await enrollment_service.create_enrollment(
            "student-1", "course-empty", EnrollmentOptions(is_emi=True, emi_config=EMI_CONFIG)
        )

        enrollment = creation.enrollment
        assert enrollment.payment_type == "emi"
        assert [i["amount"] for i in enrollment.emi_details["schedule"]] == [200.0] * 5
        assert enrollment.emi_details["gracePeriodDays"] == 5
        assert enrollment.emi_details["status"] == "active"

    @pytest.mark.asyncio
    async def test_emi_without_config_rejected(self, enrollment_service, session):
        with pytest.raises(InvalidInputError, match="emi_config"):
            await enrollment_service.create_enrollment(
                "student-1", "course-empty", EnrollmentOptions(is_emi=True)
            )

        assert await count_enrollments(session, course_id="course-empty") == 0

    @pytest.mark.asyncio
    async def test_invalid_emi_parameters_rejected(self, enrollment_service):
        config = dict(EMI_CONFIG, downPayment=5000)

        with pytest.raises(InvalidInputError, match="Down payment"):
            await enrollment_service.create_enrollment(
                "student-1", "course-empty", EnrollmentOptions(is_emi=True, emi_config=config)
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,message", [
        ({"totalAmount": "1200"}, "totalAmount must be a finite number"),
        ({"numberOfInstallments": "5"}, "integer"),
        ({"numberOfInstallments": 100000, "interestRate": 12}, "cannot exceed"),
        ({"startDate": "next tuesday"}, "startDate"),
    ])
    async def test_malformed_emi_config_is_input_error(self, enrollment_service, session, overrides, message):
        """Test wrongly typed EMI values raise InvalidInputError and write nothing"""
        with pytest.raises(InvalidInputError, match=message):
            await enrollment_service.create_enrollment(
                "student-1", "course-empty", EnrollmentOptions(is_emi=True, emi_config=dict(EMI_CONFIG, **overrides))
            )

        assert await count_enrollments(session, course_id="course-empty") == 0

    @pytest.mark.asyncio
    async def test_unknown_student_or_course(self, enrollment_service):
        with pytest.raises(NotFoundError, match="Student"):
            await enrollment_service.create_enrollment("nobody", "course-empty")
        with pytest.raises(NotFoundError, match="Course"):
            await enrollment_service.create_enrollment("student-1", "no-such-course")

    @pytest.mark.asyncio
    async def test_invalid_enums_rejected(self, enrollment_service):
        with pytest.raises(InvalidInputError, match="enrollment_type"):
            await enrollment_service.create_enrollment(
                "student-1", "course-empty", EnrollmentOptions(enrollment_type="group")
            )
        with pytest.raises(InvalidInputError, match="Unknown completion criteria"):
            await enrollment_service.create_enrollment(
                "student-1", "course-empty", EnrollmentOptions(completion_criteria={"min_hours": 3})
            )


class TestDeduplication:
    """Test one enrollment per (student, course)"""

    @pytest.mark.asyncio
    async def test_second_enrollment_rejected(self, enrollment_service, session):
        await enrollment_service.create_enrollment("student-1", "course-video")

        with pytest.raises(DuplicateEnrollmentError):
            await enrollment_service.create_enrollment("student-1", "course-video")

        assert await count_enrollments(session) == 1

    @pytest.mark.asyncio
    async def test_unique_constraint_is_the_final_guard(self, enrollment_service, session, monkeypatch):
        """Test a racing request that passes the pre-check still fails on the constraint"""
        await enrollment_service.create_enrollment("student-1", "course-empty")
        monkeypatch.setattr(enrollment_service, "_find_by_pair", AsyncMock(return_value=None))

        with pytest.raises(DuplicateEnrollmentError):
            await enrollment_service.create_enrollment("student-1", "course-empty")

        assert await count_enrollments(session, course_id="course-empty") == 1

    @pytest.mark.asyncio
    async def test_same_course_different_students(self, enrollment_service):
        await enrollment_service.create_enrollment("student-1", "course-video")
        creation = await enrollment_service.create_enrollment("student-2", "course-video")

        assert creation.modules_created == 3


class TestModuleFailure:
    """Test the enrollment survives a failed module write"""

    @pytest.mark.asyncio
    async def test_module_failure_reported_not_raised(self, enrollment_service, session, monkeypatch, caplog):
        def failing_add_all(instances):
            raise SQLAlchemyError("modules table unavailable")

        monkeypatch.setattr(session, "add_all", failing_add_all)

        creation = await enrollment_service.create_enrollment("student-1", "course-video")

        assert creation.modules_created == 0
        assert "modules table unavailable" in creation.module_error
        assert "module creation failed" in caplog.text

        enrollment = await enrollment_service.get_enrollment(creation.enrollment.id)
        assert enrollment.status == "active"


class TestReads:
    """Test lookups, listings and lazy expiry"""

    @pytest.mark.asyncio
    async def test_get_unknown_enrollment(self, enrollment_service):
        with pytest.raises(NotFoundError):
            await enrollment_service.get_enrollment(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_expiry_persisted_on_read_and_announced_once(self, enrollment_service, clock, published):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")
        clock.advance(days=400)

        enrollment = await enrollment_service.get_enrollment(creation.enrollment.id)
        assert enrollment.status == "expired"

        await enrollment_service.get_enrollment(creation.enrollment.id)
        expired_events = [e for e in published if e.event_type == "EnrollmentExpired"]
        assert len(expired_events) == 1

        access = await enrollment_service.check_access(creation.enrollment.id)
        assert access["can_access"] is False
        assert access["completion_status"] == "expired"
        assert access["remaining_days"] == 0

    @pytest.mark.asyncio
    async def test_listing_hides_expired_unless_requested(self, enrollment_service, clock):
        await enrollment_service.create_enrollment(
            "student-1", "course-video", EnrollmentOptions(expiry_date=clock() + timedelta(days=10))
        )
        await enrollment_service.create_enrollment(
            "student-1", "course-empty", EnrollmentOptions(is_self_paced=True)
        )
        clock.advance(days=11)

        visible = await enrollment_service.get_enrollments_by_student("student-1")
        everything = await enrollment_service.get_enrollments_by_student("student-1", include_expired=True)
        only_expired = await enrollment_service.get_enrollments_by_student("student-1", status="expired")

        assert [e.course_id for e in visible] == ["course-empty"]
        assert len(everything) == 2
        assert [e.course_id for e in only_expired] == ["course-video"]

    @pytest.mark.asyncio
    async def test_course_roster_and_pagination(self, enrollment_service, clock):
        await enrollment_service.create_enrollment("student-1", "course-video")
        clock.advance(minutes=1)
        await enrollment_service.create_enrollment("student-2", "course-video")

        roster = await enrollment_service.get_enrollments_by_course("course-video")
        page = await enrollment_service.get_enrollments_by_course("course-video", limit=1, offset=1)

        assert [e.student_id for e in roster] == ["student-2", "student-1"]
        assert [e.student_id for e in page] == ["student-1"]

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, enrollment_service):
        with pytest.raises(InvalidInputError):
            await enrollment_service.get_enrollments_by_student("student-1", status="archived")

    @pytest.mark.asyncio
    async def test_counts_by_student(self, enrollment_service):
        first = await enrollment_service.create_enrollment("student-1", "course-video")
        await enrollment_service.create_enrollment(
            "student-1", "course-empty", EnrollmentOptions(payment={"payment_id": "p", "amount": 10})
        )
        await enrollment_service.create_enrollment("student-1", "course-batch")
        await enrollment_service.cancel(first.enrollment.id)

        counts = await enrollment_service.get_enrollment_counts_by_student("student-1")

        assert counts["total"] == 3
        assert counts["active"] == 2
        assert counts["cancelled"] == 1
        assert counts["pending"] == 2

    @pytest.mark.asyncio
    async def test_counts_see_lazy_expiry(self, enrollment_service, clock, published):
        """Test counts report a lapsed enrollment as expired and announce it"""
        await enrollment_service.create_enrollment(
            "student-1", "course-video", EnrollmentOptions(expiry_date=clock() + timedelta(days=1))
        )
        await enrollment_service.create_enrollment("student-1", "course-empty", EnrollmentOptions(is_self_paced=True))
        clock.advance(days=2)

        counts = await enrollment_service.get_enrollment_counts_by_student("student-1")

        assert counts["total"] == 2
        assert counts["expired"] == 1
        assert counts["active"] == 1
        assert [e.event_type for e in published].count("EnrollmentExpired") == 1

    @pytest.mark.asyncio
    async def test_pagination_skips_expired_rows_in_the_query(self, enrollment_service, clock):
        """Test limit/offset apply after hiding expired rows, and total counts matches"""
        await enrollment_service.create_enrollment("student-1", "course-video", EnrollmentOptions(is_self_paced=True))
        clock.advance(minutes=1)
        await enrollment_service.create_enrollment(
            "student-1", "course-empty", EnrollmentOptions(expiry_date=clock() + timedelta(days=1))
        )
        clock.advance(minutes=1)
        await enrollment_service.create_enrollment("student-1", "course-batch", EnrollmentOptions(is_self_paced=True))
        clock.advance(days=2)

        first = await enrollment_service.get_enrollments_by_student("student-1", limit=1)
        second = await enrollment_service.get_enrollments_by_student("student-1", limit=1, offset=1)
        page = await enrollment_service.list_enrollments(include_expired=False, limit=1, offset=1)

        assert [e.course_id for e in first] == ["course-batch"]
        assert [e.course_id for e in second] == ["course-video"]
        assert page.total == 2
        assert [e.course_id for e in page.enrollments] == ["course-video"]


class TestAdminListings:
    """Test listings across all students and courses"""

    @pytest.mark.asyncio
    async def test_list_enrollments_filters_combine(self, enrollment_service, clock):
        await enrollment_service.create_enrollment(
            "student-1", "course-video", EnrollmentOptions(payment={"payment_id": "p1", "amount": 100})
        )
        clock.advance(minutes=1)
        await enrollment_service.create_enrollment(
            "student-2", "course-video", EnrollmentOptions(enrollment_type="batch")
        )
        clock.advance(minutes=1)
        await enrollment_service.create_enrollment("student-2", "course-empty")

        everything = await enrollment_service.list_enrollments()
        pending = await enrollment_service.list_enrollments(payment_status="pending")
        pending_batch = await enrollment_service.list_enrollments(payment_status="pending", enrollment_type="batch")

        assert everything.total == 3
        assert [(e.student_id, e.course_id) for e in everything.enrollments] == [
            ("student-2", "course-empty"),
            ("student-2", "course-video"),
            ("student-1", "course-video"),
        ]
        assert pending.total == 2
        assert [e.enrollment_type for e in pending_batch.enrollments] == ["batch"]

    @pytest.mark.asyncio
    async def test_list_enrollments_includes_expired_by_default(self, enrollment_service, clock):
        await enrollment_service.create_enrollment(
            "student-1", "course-video", EnrollmentOptions(expiry_date=clock() + timedelta(days=1))
        )
        clock.advance(days=2)

        page = await enrollment_service.list_enrollments()
        expired = await enrollment_service.list_enrollments(status="expired")
        hidden = await enrollment_service.list_enrollments(include_expired=False)

        assert [e.status for e in page.enrollments] == ["expired"]
        assert expired.total == 1
        assert hidden.total == 0

    @pytest.mark.asyncio
    async def test_list_enrollments_rejects_unknown_filters(self, enrollment_service):
        with pytest.raises(InvalidInputError, match="payment_status"):
            await enrollment_service.list_enrollments(payment_status="paid")
        with pytest.raises(InvalidInputError, match="enrollment_type"):
            await enrollment_service.list_enrollments(enrollment_type="group")

    @pytest.mark.asyncio
    async def test_students_with_enrollments_grouped(self, enrollment_service, clock):
        await enrollment_service.create_enrollment("student-1", "course-video")
        clock.advance(minutes=1)
        await enrollment_service.create_enrollment("student-2", "course-video")
        clock.advance(minutes=1)
        await enrollment_service.create_enrollment("student-1", "course-empty")

        page = await enrollment_service.get_students_with_enrollments()
        groups = page.by_student()

        assert page.total == 3
        assert [g["student_id"] for g in groups] == ["student-1", "student-2"]
        assert [e.course_id for e in groups[0]["enrollments"]] == ["course-empty", "course-video"]

    @pytest.mark.asyncio
    async def test_students_with_enrollments_hides_expired(self, enrollment_service, clock):
        await enrollment_service.create_enrollment(
            "student-1", "course-video", EnrollmentOptions(expiry_date=clock() + timedelta(days=1))
        )
        await enrollment_service.create_enrollment("student-2", "course-video", EnrollmentOptions(is_self_paced=True))
        clock.advance(days=2)

        visible = await enrollment_service.get_students_with_enrollments()
        everyone = await enrollment_service.get_students_with_enrollments(include_expired=True)

        assert [g["student_id"] for g in visible.by_student()] == ["student-2"]
        assert {g["student_id"] for g in everyone.by_student()} == {"student-1", "student-2"}


class TestUpdates:
    """Test partial updates and status changes"""

    @pytest.mark.asyncio
    async def test_ids_are_immutable(self, enrollment_service):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")

        with pytest.raises(InvalidInputError, match="course_id cannot be changed"):
            await enrollment_service.update_enrollment(creation.enrollment.id, {"course_id": "course-empty"})

        # Restating the current value is allowed
        updated = await enrollment_service.update_enrollment(
            creation.enrollment.id, {"student_id": "student-1", "learning_path": "flexible"}
        )
        assert updated.learning_path == "flexible"
        assert updated.course_id == "course-video"

    @pytest.mark.asyncio
    async def test_unknown_fields_rejected(self, enrollment_service):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")

        with pytest.raises(InvalidInputError, match="cannot be updated"):
            await enrollment_service.update_enrollment(creation.enrollment.id, {"progress": 100})

    @pytest.mark.asyncio
    async def test_expiry_required_unless_self_paced(self, enrollment_service):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")

        with pytest.raises(InvalidInputError, match="expiry_date"):
            await enrollment_service.update_enrollment(creation.enrollment.id, {"expiry_date": None})

        updated = await enrollment_service.update_enrollment(creation.enrollment.id, {"is_self_paced": True})
        assert updated.expiry_date is None

    @pytest.mark.asyncio
    async def test_suspend_resume_cancel(self, enrollment_service):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")
        enrollment_id = creation.enrollment.id

        assert (await enrollment_service.suspend(enrollment_id)).status == "suspended"
        assert (await enrollment_service.check_access(enrollment_id))["can_access"] is False
        assert (await enrollment_service.resume(enrollment_id)).status == "active"
        assert (await enrollment_service.cancel(enrollment_id)).status == "cancelled"

        with pytest.raises(InvalidTransitionError):
            await enrollment_service.resume(enrollment_id)

    @pytest.mark.asyncio
    async def test_completion_through_update(self, enrollment_service, published):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")

        updated = await enrollment_service.update_enrollment(creation.enrollment.id, {"is_completed": True})

        assert updated.status == "completed"
        assert updated.completed_on is not None
        assert published[-1].event_type == "EnrollmentCompleted"
        assert published[-1].trigger == "explicit"

        with pytest.raises(InvalidInputError, match="cannot be reopened"):
            await enrollment_service.update_enrollment(creation.enrollment.id, {"is_completed": False})

    @pytest.mark.asyncio
    async def test_mark_completed_twice(self, enrollment_service, published):
        await enrollment_service.create_enrollment("student-1", "course-video")

        enrollment = await enrollment_service.mark_completed("student-1", "course-video")
        assert enrollment.is_completed is True

        with pytest.raises(AlreadyCompletedError):
            await enrollment_service.mark_completed("student-1", "course-video")

        assert sum(1 for e in published if e.event_type == "EnrollmentCompleted") == 1

    @pytest.mark.asyncio
    async def test_mark_completed_unknown_pair(self, enrollment_service):
        with pytest.raises(NotFoundError):
            await enrollment_service.mark_completed("student-2", "course-video")


class TestDelete:
    """Test deletion cascades"""

    @pytest.mark.asyncio
    async def test_delete_removes_modules_and_progress(self, enrollment_service, progress_service, session):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")
        await progress_service.record_lesson_progress("student-1", "course-video", "L1", "in_progress", 30)

        result = await enrollment_service.delete_enrollment(creation.enrollment.id)

        assert result == {"modules_deleted": 3, "progress_deleted": 1}
        remaining = await session.execute(select(func.count(EnrolledModule.id)))
        assert remaining.scalar_one() == 0
        with pytest.raises(NotFoundError):
            await enrollment_service.get_enrollment(creation.enrollment.id)

    @pytest.mark.asyncio
    async def test_delete_unknown(self, enrollment_service):
        with pytest.raises(NotFoundError):
            await enrollment_service.delete_enrollment(uuid.uuid4())


class TestWatchModules:
    """Test completion by watching every module"""

    @pytest.mark.asyncio
    async def test_watching_all_modules_completes_once(self, enrollment_service, published):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")
        modules = await enrollment_service.get_modules(creation.enrollment.id)

        results = [await enrollment_service.watch_module(m.id, "student-1") for m in modules]

        assert [r["enrollment_completed"] for r in results] == [False, False, True]
        assert results[-1]["watched_modules"] == results[-1]["total_modules"] == 3

        again = await enrollment_service.watch_module(modules[0].id, "student-1")
        assert again["enrollment_completed"] is False

        enrollment = await enrollment_service.get_enrollment(creation.enrollment.id)
        assert enrollment.status == "completed"
        assert enrollment.is_completed is True

        completed = [e for e in published if e.event_type == "EnrollmentCompleted"]
        assert len(completed) == 1
        assert completed[0].trigger == "all_modules_watched"

    @pytest.mark.asyncio
    async def test_cannot_watch_another_students_module(self, enrollment_service):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")
        modules = await enrollment_service.get_modules(creation.enrollment.id)

        with pytest.raises(UnauthorizedError):
            await enrollment_service.watch_module(modules[0].id, "student-2")

    @pytest.mark.asyncio
    async def test_cannot_watch_without_access(self, enrollment_service, clock):
        creation = await enrollment_service.create_enrollment("student-1", "course-video")
        modules = await enrollment_service.get_modules(creation.enrollment.id)
        clock.advance(days=400)

        with pytest.raises(UnauthorizedError):
            await enrollment_service.watch_module(modules[0].id, "student-1")

    @pytest.mark.asyncio
    async def test_unknown_module(self, enrollment_service):
        with pytest.raises(NotFoundError):
            await enrollment_service.watch_module(uuid.uuid4(), "student-1")


class TestEmiReconciliation:
    """Test EMI assessment and payment hooks"""

    async def _emi_enrollment(self, enrollment_service):
        creation = await enrollment_service.create_enrollment(
            "student-1",
            "course-empty",
            EnrollmentOptions(is_emi=True, emi_config=EMI_CONFIG, payment_status="pending"),
        )
        return creation.enrollment

    @pytest.mark.asyncio
    async def test_missed_payments_assessed_on_read(self, enrollment_service, clock):
        enrollment = await self._emi_enrollment(enrollment_service)
        clock.advance(days=40)

        schedule = await enrollment_service.get_emi_schedule(enrollment.id)

        assert schedule.schedule[0].status == "overdue"
        assert schedule.missed_payments == 1
        assert enrollment.emi_details["missedPayments"] == 1

    @pytest.mark.asyncio
    async def test_settling_schedule_completes_payment(self, enrollment_service):
        enrollment = await self._emi_enrollment(enrollment_service)

        for number in range(1, 5):
            await enrollment_service.record_installment_payment(enrollment.id, number)
        schedule = await enrollment_service.waive_installment(enrollment.id, 5)

        assert schedule.status == "completed"
        assert enrollment.payment_status == "completed"
        assert enrollment.emi_details["schedule"][4]["status"] == "waived"

    @pytest.mark.asyncio
    async def test_non_emi_enrollment(self, enrollment_service):
        creation = await enrollment_service.create_enrollment("student-1", "course-empty")

        with pytest.raises(InvalidInputError, match="not on an EMI plan"):
            await enrollment_service.get_emi_schedule(creation.enrollment.id)
