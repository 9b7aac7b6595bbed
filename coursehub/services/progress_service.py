"""
Progress Service

Applies lesson, quiz and assignment events to the persisted Progress record
of an enrollment, recomputes the weighted rollup, mirrors it onto the
enrollment and completes the enrollment once its completion criteria are met.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from coursehub.exceptions import NotFoundError, UnauthorizedError
from coursehub.models import Enrollment, Progress
from coursehub.services import enrollment_state, progress_aggregator
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.progress_aggregator import (
    AssignmentProgress,
    LessonProgress,
    ProgressState,
    QuizProgress,
)
from coursehub.timeutils import parse_datetime

logger = logging.getLogger(__name__)


def to_state(record: Optional[Progress]) -> ProgressState:
    """Load the JSON columns into plain dataclasses (empty progress when no record yet)"""
    if record is None:
        return progress_aggregator.recompute(ProgressState())
    return ProgressState(
        lessons=[LessonProgress.from_dict(p) for p in record.lesson_progress or []],
        quizzes=[QuizProgress.from_dict(p) for p in record.quiz_progress or []],
        assignments=[AssignmentProgress.from_dict(p) for p in record.assignment_progress or []],
        overall_progress=record.overall_progress or 0,
        meta=dict(record.meta or {}),
        last_accessed=parse_datetime(record.last_accessed),
    )


def write_state(record: Progress, state: ProgressState) -> None:
    """Store a recomputed state; new containers so the ORM sees the change"""
    record.lesson_progress = [p.to_dict() for p in state.lessons]
    record.quiz_progress = [p.to_dict() for p in state.quizzes]
    record.assignment_progress = [p.to_dict() for p in state.assignments]
    record.overall_progress = state.overall_progress
    record.meta = dict(state.meta)
    record.last_accessed = state.last_accessed


class ProgressService:
    """Progress events for enrolled students"""

    def __init__(self, enrollments: EnrollmentService):
        self.enrollments = enrollments
        self.session = enrollments.session

    async def _accessible_enrollment(self, student_id: str, course_id: str) -> Enrollment:
        enrollment = await self.enrollments.get_enrollment_by_pair(student_id, course_id)
        if not enrollment_state.can_access(enrollment, self.enrollments.clock()):
            raise UnauthorizedError(
                "Enrollment does not grant access",
                details={"status": enrollment.status},
            )
        return enrollment

    async def _load_record(self, enrollment: Enrollment) -> Optional[Progress]:
        result = await self.session.execute(
            select(Progress).where(
                Progress.student_id == enrollment.student_id,
                Progress.course_id == enrollment.course_id,
            )
        )
        return result.scalar_one_or_none()

    async def _save(self, enrollment: Enrollment, record: Optional[Progress], state: ProgressState) -> ProgressState:
        if record is None:
            record = Progress(
                id=uuid.uuid4(),
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                enrollment_id=enrollment.id,
            )
            self.session.add(record)
        write_state(record, state)
        enrollment.progress = state.overall_progress
        enrollment.last_accessed = state.last_accessed or self.enrollments.clock()
        await self.session.commit()

        logger.debug(
            f"Progress for {enrollment.student_id}/{enrollment.course_id}: "
            f"{state.overall_progress}% meta={state.meta}"
        )

        await self.enrollments.complete_if_criteria_met(enrollment, state)
        return state

    async def get_progress(self, student_id: str, course_id: str) -> ProgressState:
        enrollment = await self.enrollments.get_enrollment_by_pair(student_id, course_id)
        return to_state(await self._load_record(enrollment))

    async def record_lesson_progress(
        self,
        student_id: str,
        course_id: str,
        lesson_id: str,
        status: str,
        time_spent: float = 0,
    ) -> ProgressState:
        enrollment = await self._accessible_enrollment(student_id, course_id)
        record = await self._load_record(enrollment)
        state = progress_aggregator.apply_lesson_update(
            to_state(record), lesson_id, status, time_spent, now=self.enrollments.clock()
        )
        return await self._save(enrollment, record, state)

    async def record_quiz_attempt(
        self,
        student_id: str,
        course_id: str,
        quiz_id: str,
        score: float,
        passing_score: float,
        answers: Optional[List[Dict[str, Any]]] = None,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> ProgressState:
        enrollment = await self._accessible_enrollment(student_id, course_id)
        record = await self._load_record(enrollment)
        state = progress_aggregator.apply_quiz_attempt(
            to_state(record),
            quiz_id,
            score,
            passing_score,
            answers=answers,
            started_at=started_at,
            completed_at=completed_at or self.enrollments.clock(),
        )
        return await self._save(enrollment, record, state)

    async def submit_assignment(
        self,
        student_id: str,
        course_id: str,
        assignment_id: str,
        content: str,
        score: Optional[float] = None,
        files: Optional[List[Dict[str, Any]]] = None,
    ) -> ProgressState:
        enrollment = await self._accessible_enrollment(student_id, course_id)
        record = await self._load_record(enrollment)
        state = progress_aggregator.apply_assignment_submission(
            to_state(record), assignment_id, content, score=score, files=files, now=self.enrollments.clock()
        )
        return await self._save(enrollment, record, state)

    async def grade_assignment(
        self,
        student_id: str,
        course_id: str,
        assignment_id: str,
        submission_number: int,
        score: float,
        feedback: Optional[str] = None,
        graded_by: Optional[str] = None,
    ) -> ProgressState:
        # No access check: the enrollment only has to exist
        enrollment = await self.enrollments.get_enrollment_by_pair(student_id, course_id)
        record = await self._load_record(enrollment)
        if record is None:
            raise NotFoundError(f"No submissions for assignment {assignment_id}")
        state = progress_aggregator.apply_assignment_grade(
            to_state(record),
            assignment_id,
            submission_number,
            score,
            feedback=feedback,
            graded_by=graded_by,
            now=self.enrollments.clock(),
        )
        return await self._save(enrollment, record, state)
