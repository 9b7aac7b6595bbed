"""Catalog mirror models - Users and courses owned by other services"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, CheckConstraint
from sqlalchemy.sql import func

from coursehub.database import Base
from coursehub.timeutils import utcnow


class User(Base):
    """Local mirror of a platform user"""

    __tablename__ = "users"

    id = Column(String(100), primary_key=True)
    full_name = Column(String(200), nullable=True)
    email = Column(String(320), nullable=True)
    role = Column(String(20), nullable=False, default="student")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, role={self.role})>"


class Course(Base):
    """Local mirror of a catalog course: content list and batch pricing"""

    __tablename__ = "courses"

    id = Column(String(100), primary_key=True)
    title = Column(String(300), nullable=False)
    video_content_urls = Column(JSON, nullable=False, default=list)
    min_batch_size = Column(
        Integer,
        CheckConstraint("min_batch_size >= 1", name="ck_courses_min_batch_size"),
        nullable=False,
        default=2,
    )
    is_self_paced = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Course(id={self.id}, title={self.title})>"
