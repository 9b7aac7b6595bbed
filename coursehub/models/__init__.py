"""SQLAlchemy ORM Models for the enrollment database schema"""
from coursehub.models.catalog import User, Course
from coursehub.models.enrollment import Enrollment, DEFAULT_COMPLETION_CRITERIA
from coursehub.models.enrolled_module import EnrolledModule
from coursehub.models.progress import Progress

__all__ = [
    "User",
    "Course",
    "Enrollment",
    "DEFAULT_COMPLETION_CRITERIA",
    "EnrolledModule",
    "Progress",
]
