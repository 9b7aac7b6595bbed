"""EnrolledModule model - One playable content unit materialized for an enrollment"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.sql import func
import uuid

from coursehub.database import Base
from coursehub.timeutils import utcnow


class EnrolledModule(Base):
    """Video unit tied to an enrollment, with watched flag"""

    __tablename__ = "enrolled_modules"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(String(100), nullable=False)
    course_id = Column(String(100), nullable=False)
    enrollment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("enrollments.id", ondelete="CASCADE"),
        nullable=False,
    )
    video_url = Column(String(1000), nullable=True)
    is_watched = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("idx_modules_enrollment", "enrollment_id"),
        Index("idx_modules_student_course", "student_id", "course_id"),
    )

    def __repr__(self):
        return f"<EnrolledModule(id={self.id}, enrollment={self.enrollment_id}, watched={self.is_watched})>"
