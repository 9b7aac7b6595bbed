"""
Shared fixtures

Integration tests run against an in-memory SQLite database through
aiosqlite; StaticPool keeps the single connection (and its tables) alive
for the whole test.
"""

import pytest
from datetime import datetime, timedelta, timezone

from sqlalchemy.pool import StaticPool

from coursehub.database import Database
from coursehub.models import Course, User
from coursehub.services.catalog import SqlCourseRepo, SqlUserRepo
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.events import (
    EnrollmentCompleted,
    EnrollmentCreated,
    EnrollmentExpired,
    EventPublisher,
)
from coursehub.services.progress_service import ProgressService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

VIDEO_URLS = [
    "https://videos.example.com/intro.mp4",
    "https://videos.example.com/basics.mp4",
    "https://videos.example.com/advanced.mp4",
]


class FrozenClock:
    """Callable clock the services read instead of the wall clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def database():
    """Fresh in-memory database with all tables"""
    db = Database(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def catalog(database):
    """Two students and three courses in the catalog mirror"""
    async with database.session_factory() as session:
        session.add_all([
            User(id="student-1", full_name="Asha Rao", email="asha@example.com", role="student"),
            User(id="student-2", full_name="Ben Okafor", email="ben@example.com", role="student"),
            Course(id="course-video", title="Video Course", video_content_urls=VIDEO_URLS, min_batch_size=2),
            Course(id="course-empty", title="Reading Course", video_content_urls=[], min_batch_size=2),
            Course(id="course-batch", title="Cohort Course", video_content_urls=VIDEO_URLS[:1], min_batch_size=4),
        ])
        await session.commit()


@pytest.fixture
async def session(database, catalog):
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def published(publisher):
    """Every event the publisher delivers, in order"""
    events = []
    for event_type in (EnrollmentCreated, EnrollmentCompleted, EnrollmentExpired):
        publisher.subscribe(event_type, events.append)
    return events


@pytest.fixture
def enrollment_service(session, publisher, clock):
    return EnrollmentService(
        session=session,
        users=SqlUserRepo(session),
        courses=SqlCourseRepo(session),
        events=publisher,
        clock=clock,
    )


@pytest.fixture
def progress_service(enrollment_service):
    return ProgressService(enrollment_service)
