"""Enrollment model - One student's relationship to one course"""
from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, JSON, CheckConstraint, Index, UniqueConstraint, Uuid
from sqlalchemy.sql import func
import uuid

from coursehub.database import Base
from coursehub.timeutils import utcnow


DEFAULT_COMPLETION_CRITERIA = {
    "required_progress": 100,
    "required_assignments": True,
    "required_quizzes": True,
}


class Enrollment(Base):
    """Course enrollment with payment, EMI schedule and completion tracking"""

    __tablename__ = "enrollments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(String(100), nullable=False)
    course_id = Column(String(100), nullable=False)
    enrollment_type = Column(String(20), nullable=False, default="individual")
    batch_size = Column(
        Integer,
        CheckConstraint("batch_size >= 1", name="ck_enrollments_batch_size"),
        nullable=False,
        default=1,
    )
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_type = Column(String(20), nullable=False, default="full")
    payment_details = Column(JSON, nullable=True)
    emi_details = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    enrollment_date = Column(DateTime(timezone=True), nullable=False)
    is_self_paced = Column(Boolean, nullable=False, default=False)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_on = Column(DateTime(timezone=True), nullable=True)
    progress = Column(
        Float,
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_enrollments_progress"),
        nullable=False,
        default=0,
    )
    learning_path = Column(String(20), nullable=False, default="sequential")
    completion_criteria = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_COMPLETION_CRITERIA))
    source_info = Column(JSON, nullable=True)
    last_accessed = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    # The unique pair is the authoritative duplicate guard
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
        Index("idx_enrollments_student", "student_id"),
        Index("idx_enrollments_course", "course_id"),
        Index("idx_enrollments_status", "status"),
    )

    def __repr__(self):
        return f"<Enrollment(id={self.id}, student={self.student_id}, course={self.course_id}, status={self.status})>"
