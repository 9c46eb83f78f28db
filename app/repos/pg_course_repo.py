"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseEnrollmentRow, CourseRatingRow, CourseRow, LectureRow
from app.models.course import Course, CoursePage, CourseRating, CourseSearch, Lecture


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: str) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        students = await self._enrolled_students([course_id])
        ratings = await self._ratings([course_id])
        return _row_to_course(
            row,
            students.get(course_id, frozenset()),
            ratings.get(course_id, ()),
        )

    async def get_many(self, course_ids: Iterable[str]) -> dict[str, Course]:
        ids = list(dict.fromkeys(course_ids))
        if not ids:
            return {}
        stmt = select(CourseRow).where(CourseRow.id.in_(ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        students = await self._enrolled_students(ids)
        return {
            row.id: _row_to_course(row, students.get(row.id, frozenset()))
            for row in rows
        }

    async def list_published(self) -> list[Course]:
        stmt = (
            select(CourseRow)
            .where(CourseRow.is_published.is_(True))
            .order_by(CourseRow.title)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        # Catalogue listings do not need the roster.
        return [_row_to_course(row, frozenset()) for row in rows]

    async def search(self, query: CourseSearch) -> CoursePage:
        average = (
            select(func.coalesce(func.avg(CourseRatingRow.value), 0))
            .where(CourseRatingRow.course_id == CourseRow.id)
            .scalar_subquery()
        )
        stmt = select(CourseRow).where(CourseRow.is_published.is_(True))
        if query.keyword:
            pattern = f"%{_escape_like(query.keyword)}%"
            stmt = stmt.where(
                or_(
                    CourseRow.title.ilike(pattern, escape="\\"),
                    CourseRow.description.ilike(pattern, escape="\\"),
                )
            )
        if query.category is not None:
            stmt = stmt.where(CourseRow.category == query.category)
        if query.level is not None:
            stmt = stmt.where(CourseRow.level == query.level)
        if query.min_price is not None:
            stmt = stmt.where(CourseRow.price >= query.min_price)
        if query.max_price is not None:
            stmt = stmt.where(CourseRow.price <= query.max_price)
        if query.min_rating is not None:
            stmt = stmt.where(average >= query.min_rating)

        total = await self._session.scalar(
            select(func.count()).select_from(stmt.subquery())
        )

        order_by = {
            "priceAsc": [CourseRow.price.asc()],
            "priceDesc": [CourseRow.price.desc()],
            "ratingDesc": [average.desc()],
        }.get(query.sort_by or "", [])
        stmt = (
            stmt.order_by(*order_by, CourseRow.title, CourseRow.id)
            .offset(query.offset)
            .limit(query.limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        ratings = await self._ratings([row.id for row in rows])
        return CoursePage(
            courses=[
                _row_to_course(row, frozenset(), ratings.get(row.id, ()))
                for row in rows
            ],
            total=total or 0,
            page=query.page,
            limit=query.limit,
        )

    async def list_lectures(self, course_id: str) -> list[Lecture]:
        stmt = (
            select(LectureRow)
            .where(LectureRow.course_id == course_id)
            .order_by(LectureRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lecture(r) for r in rows]

    async def get_lecture(self, course_id: str, lecture_id: str) -> Lecture | None:
        stmt = select(LectureRow).where(
            LectureRow.id == lecture_id, LectureRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_lecture(row) if row is not None else None

    async def add_student(self, course_id: str, user_id: str) -> None:
        stmt = (
            pg_insert(CourseEnrollmentRow)
            .values(course_id=course_id, user_id=user_id)
            .on_conflict_do_nothing(
                index_elements=[
                    CourseEnrollmentRow.course_id,
                    CourseEnrollmentRow.user_id,
                ]
            )
        )
        await self._session.execute(stmt)

    async def add(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                title=course.title,
                price=course.price,
                instructor_id=course.instructor_id,
                total_lectures=course.total_lectures,
                is_published=course.is_published,
                description=course.description,
                category=course.category,
                level=course.level,
            )
        )
        self._session.add_all(
            CourseRatingRow(course_id=course.id, user_id=r.user_id, value=r.value)
            for r in course.ratings
        )
        await self._session.flush()

    async def add_lecture(self, lecture: Lecture) -> None:
        self._session.add(
            LectureRow(
                id=lecture.id,
                course_id=lecture.course_id,
                title=lecture.title,
                position=lecture.position,
                video_url=lecture.video_url,
            )
        )
        await self._session.flush()
        await self._session.execute(
            update(CourseRow)
            .where(CourseRow.id == lecture.course_id)
            .values(total_lectures=CourseRow.total_lectures + 1)
        )

    async def _enrolled_students(
        self, course_ids: list[str]
    ) -> dict[str, frozenset[str]]:
        stmt = select(CourseEnrollmentRow.course_id, CourseEnrollmentRow.user_id).where(
            CourseEnrollmentRow.course_id.in_(course_ids)
        )
        grouped: dict[str, set[str]] = {}
        for course_id, user_id in (await self._session.execute(stmt)).all():
            grouped.setdefault(course_id, set()).add(user_id)
        return {cid: frozenset(users) for cid, users in grouped.items()}

    async def _ratings(
        self, course_ids: list[str]
    ) -> dict[str, tuple[CourseRating, ...]]:
        if not course_ids:
            return {}
        stmt = (
            select(
                CourseRatingRow.course_id,
                CourseRatingRow.user_id,
                CourseRatingRow.value,
            )
            .where(CourseRatingRow.course_id.in_(course_ids))
            .order_by(CourseRatingRow.user_id)
        )
        grouped: dict[str, list[CourseRating]] = {}
        for course_id, user_id, value in (await self._session.execute(stmt)).all():
            grouped.setdefault(course_id, []).append(CourseRating(user_id, value))
        return {cid: tuple(ratings) for cid, ratings in grouped.items()}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_course(
    row: CourseRow,
    students: frozenset[str],
    ratings: tuple[CourseRating, ...] = (),
) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        price=Decimal(row.price),
        instructor_id=row.instructor_id,
        total_lectures=row.total_lectures,
        is_published=row.is_published,
        enrolled_students=students,
        description=row.description,
        category=row.category,
        level=row.level,
        ratings=ratings,
    )


def _row_to_lecture(row: LectureRow) -> Lecture:
    return Lecture(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        position=row.position,
        video_url=row.video_url,
    )
