"""Repository wiring.

With DATABASE_URL set, each request gets PostgreSQL repos sharing one
session: the purchase insert and the enrollment it implies commit
together, or not at all.  Without it, a process-wide set of in-memory
repos is used, seeded with a sample course so the API is usable in dev.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from decimal import Decimal

from app.db.engine import async_session_factory
from app.models.course import Course, CourseRating, Lecture
from app.repos.course_repo import CourseRepo, InMemoryCourseRepo
from app.repos.pg_course_repo import PgCourseRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_purchase_repo import PgPurchaseRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.repos.purchase_repo import InMemoryPurchaseRepo, PurchaseRepo

SAMPLE_COURSE_ID = "intro-to-python"
SAMPLE_INSTRUCTOR_ID = "instructor-1"


@dataclass(slots=True)
class Stores:
    courses: CourseRepo
    purchases: PurchaseRepo
    progress: ProgressRepo


def _sample_catalogue() -> tuple[list[Course], list[Lecture]]:
    titles = ["Setup", "Syntax", "Functions", "Packaging"]
    lectures = [
        Lecture(
            id=f"{SAMPLE_COURSE_ID}-{n}",
            course_id=SAMPLE_COURSE_ID,
            title=title,
            position=n,
            video_url=f"https://videos.example.com/{SAMPLE_COURSE_ID}/{n}.mp4",
        )
        for n, title in enumerate(titles, start=1)
    ]
    course = Course(
        id=SAMPLE_COURSE_ID,
        title="Introduction to Python",
        price=Decimal("499.00"),
        instructor_id=SAMPLE_INSTRUCTOR_ID,
        total_lectures=len(lectures),
        is_published=True,
        description="Variables, control flow, functions and packaging, from scratch.",
        category="programming",
        level="beginner",
        ratings=(CourseRating("learner-a", 5), CourseRating("learner-b", 4)),
    )
    return [course], lectures


def _fresh_memory_stores() -> Stores:
    courses, lectures = _sample_catalogue()
    return Stores(
        courses=InMemoryCourseRepo(courses, lectures),
        purchases=InMemoryPurchaseRepo(),
        progress=InMemoryProgressRepo(),
    )


memory_stores = _fresh_memory_stores()


def reset_memory_stores() -> None:
    """Drop all in-memory state and re-seed the sample course."""
    fresh = _fresh_memory_stores()
    memory_stores.courses = fresh.courses
    memory_stores.purchases = fresh.purchases
    memory_stores.progress = fresh.progress


async def get_stores() -> AsyncGenerator[Stores, None]:
    if async_session_factory is None:
        yield memory_stores
        return

    async with async_session_factory() as session:
        try:
            yield Stores(
                courses=PgCourseRepo(session),
                purchases=PgPurchaseRepo(session),
                progress=PgProgressRepo(session),
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise
