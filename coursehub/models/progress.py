"""Progress model - Lesson/quiz/assignment rollup per (student, course)"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON, CheckConstraint, UniqueConstraint, Uuid
from sqlalchemy.sql import func
import uuid

from coursehub.database import Base
from coursehub.timeutils import utcnow


class Progress(Base):
    """
    Persisted learning progress.

    The sub-lists are stored as JSON documents; `overall_progress` and `meta`
    are derived by the progress aggregator and never written directly.
    """

    __tablename__ = "progress"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(String(100), nullable=False)
    course_id = Column(String(100), nullable=False)
    enrollment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
    )
    lesson_progress = Column(JSON, nullable=False, default=list)
    quiz_progress = Column(JSON, nullable=False, default=list)
    assignment_progress = Column(JSON, nullable=False, default=list)
    overall_progress = Column(
        Integer,
        CheckConstraint("overall_progress >= 0 AND overall_progress <= 100", name="ck_progress_overall"),
        nullable=False,
        default=0,
    )
    meta = Column(JSON, nullable=False, default=dict)
    last_accessed = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_progress_student_course"),
    )

    def __repr__(self):
        return f"<Progress(student={self.student_id}, course={self.course_id}, overall={self.overall_progress})>"
