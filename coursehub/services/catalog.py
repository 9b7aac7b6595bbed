"""
Catalog Collaborators

UserRepo and CourseRepo are the only views the enrollment core has of the
user and course services. The SQLAlchemy implementations read the local
catalog mirror tables.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.exceptions import NotFoundError
from coursehub.models.catalog import Course, User

logger = logging.getLogger(__name__)


@dataclass
class CourseInfo:
    """What enrollment needs to know about a course"""
    course_id: str
    video_content_urls: List[str] = field(default_factory=list)
    min_batch_size: int = 2


class UserRepo(Protocol):
    async def exists(self, student_id: str) -> bool:
        ...


class CourseRepo(Protocol):
    async def get(self, course_id: str) -> CourseInfo:
        ...


class SqlUserRepo:
    """UserRepo over the `users` mirror table"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists(self, student_id: str) -> bool:
        result = await self.session.execute(select(User.id).where(User.id == student_id))
        return result.scalar_one_or_none() is not None


class SqlCourseRepo:
    """CourseRepo over the `courses` mirror table"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, course_id: str) -> CourseInfo:
        course = await self.session.get(Course, course_id)
        if course is None:
            raise NotFoundError(f"Course {course_id} not found", details={"course_id": course_id})

        return CourseInfo(
            course_id=course.id,
            video_content_urls=[url for url in (course.video_content_urls or []) if url],
            min_batch_size=course.min_batch_size or 2,
        )
