"""FastAPI dependencies wiring request sessions to the enrollment services"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.database import get_db
from coursehub.services.catalog import SqlCourseRepo, SqlUserRepo
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.events import get_event_publisher
from coursehub.services.progress_service import ProgressService


def get_enrollment_service(db: AsyncSession = Depends(get_db)) -> EnrollmentService:
    return EnrollmentService(
        session=db,
        users=SqlUserRepo(db),
        courses=SqlCourseRepo(db),
        events=get_event_publisher(),
    )


def get_progress_service(
    enrollments: EnrollmentService = Depends(get_enrollment_service),
) -> ProgressService:
    return ProgressService(enrollments)
