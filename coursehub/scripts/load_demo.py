"""
Demo Scenario Loader

Seeds the catalog mirror (users, courses) and, optionally, a set of demo
enrollments for local development and presentations.
Usage: python -m coursehub.scripts.load_demo --scenario enrolled
"""
import asyncio
import argparse
from datetime import timedelta
from typing import Dict

from sqlalchemy import delete

from coursehub.database import Database, DATABASE_URL
from coursehub.models import Course, EnrolledModule, Enrollment, Progress, User
from coursehub.services.catalog import SqlCourseRepo, SqlUserRepo
from coursehub.services.enrollment_service import EnrollmentOptions, EnrollmentService
from coursehub.timeutils import utcnow

DEMO_STUDENTS = [
    ("demo-student-1", "Asha Rao", "asha@example.com"),
    ("demo-student-2", "Ben Okafor", "ben@example.com"),
    ("demo-student-3", "Chen Li", "chen@example.com"),
]

DEMO_COURSES = [
    {
        "id": "demo-python-101",
        "title": "Python Foundations",
        "video_content_urls": [f"https://videos.example.com/python-101/{i}.mp4" for i in range(1, 6)],
        "min_batch_size": 2,
        "is_self_paced": False,
    },
    {
        "id": "demo-data-201",
        "title": "Data Analysis with SQL",
        "video_content_urls": [f"https://videos.example.com/data-201/{i}.mp4" for i in range(1, 4)],
        "min_batch_size": 5,
        "is_self_paced": True,
    },
]

SCENARIOS = ["catalog", "enrolled"]


async def clear_demo_data(database: Database) -> None:
    """Clear all existing data"""
    async with database.session_factory() as session:
        for model in (Progress, EnrolledModule, Enrollment, Course, User):
            await session.execute(delete(model))
        await session.commit()
    print("✓ Cleared existing data")


async def load_catalog(database: Database) -> Dict[str, int]:
    """Insert demo students and courses"""
    async with database.session_factory() as session:
        for student_id, full_name, email in DEMO_STUDENTS:
            session.add(User(id=student_id, full_name=full_name, email=email, role="student"))
        for course in DEMO_COURSES:
            session.add(Course(**course))
        await session.commit()

    print(f"  Created {len(DEMO_STUDENTS)} students and {len(DEMO_COURSES)} courses")
    return {"users": len(DEMO_STUDENTS), "courses": len(DEMO_COURSES)}


async def load_enrollments(database: Database) -> Dict[str, int]:
    """
    Enroll the demo students through the enrollment service.

    One full-payment enrollment, one EMI enrollment, one self-paced batch
    enrollment and one whose access has already lapsed.
    """
    now = utcnow()
    async with database.session_factory() as session:
        service = EnrollmentService(session, SqlUserRepo(session), SqlCourseRepo(session))

        requests = [
            ("demo-student-1", "demo-python-101", EnrollmentOptions(
                payment={"payment_id": "pay_demo_1", "order_id": "order_demo_1", "amount": 4999},
            )),
            ("demo-student-2", "demo-python-101", EnrollmentOptions(
                is_emi=True,
                payment={"payment_id": "pay_demo_2", "order_id": "order_demo_2", "amount": 1000},
                emi_config={"totalAmount": 6000, "downPayment": 1000, "numberOfInstallments": 5},
                payment_status="pending",
            )),
            ("demo-student-1", "demo-data-201", EnrollmentOptions(
                enrollment_type="batch",
                is_self_paced=True,
            )),
            ("demo-student-3", "demo-python-101", EnrollmentOptions(
                expiry_date=now - timedelta(days=1),
            )),
        ]

        modules = 0
        for student_id, course_id, options in requests:
            creation = await service.create_enrollment(student_id, course_id, options)
            modules += creation.modules_created

    print(f"  Created {len(requests)} enrollments with {modules} modules")
    return {"enrollments": len(requests), "modules": modules}


async def load_scenario(database: Database, scenario_name: str) -> Dict[str, int]:
    """
    Load a demo scenario into an empty catalog.

    Args:
        database: Target database handle
        scenario_name: "catalog" or "enrolled"

    Returns:
        Counts of created records
    """
    if scenario_name not in SCENARIOS:
        raise ValueError(f"Unknown scenario '{scenario_name}'. Available scenarios: {', '.join(SCENARIOS)}")

    print(f"\nLoading '{scenario_name}' scenario...")
    await clear_demo_data(database)

    summary = await load_catalog(database)
    if scenario_name == "enrolled":
        summary.update(await load_enrollments(database))

    print(f"\n✅ Scenario '{scenario_name}' loaded successfully!")
    return summary


async def run(scenario_name: str, database_url: str, create_tables: bool) -> None:
    database = Database(database_url)
    try:
        if create_tables:
            await database.create_all()
        await load_scenario(database, scenario_name)
    finally:
        await database.dispose()


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load demo scenarios")
    parser.add_argument(
        "--scenario",
        "-s",
        choices=SCENARIOS,
        required=True,
        help="Scenario to load"
    )
    parser.add_argument(
        "--database-url",
        default=DATABASE_URL,
        help="Database URL (defaults to DATABASE_URL)"
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables before loading (local development without Alembic)"
    )

    args = parser.parse_args()
    asyncio.run(run(args.scenario, args.database_url, args.create_tables))


if __name__ == "__main__":
    main()
