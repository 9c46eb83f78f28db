"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from sqlalchemy import String, case, func, select, update
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseProgressRow
from app.models.progress import CourseProgress


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL.

    ``add_lecture`` is a single upsert so two concurrent marks for the same
    (user, course) cannot lose each other's lecture or duplicate one.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str, course_id: str) -> CourseProgress | None:
        # populate_existing: upserts below bypass the identity map
        stmt = (
            select(CourseProgressRow)
            .where(
                CourseProgressRow.user_id == user_id,
                CourseProgressRow.course_id == course_id,
            )
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row)

    async def get_or_create(self, user_id: str, course_id: str) -> CourseProgress:
        stmt = (
            pg_insert(CourseProgressRow)
            .values(user_id=user_id, course_id=course_id, completed_lectures=[])
            .on_conflict_do_nothing(
                index_elements=[CourseProgressRow.user_id, CourseProgressRow.course_id]
            )
        )
        await self._session.execute(stmt)
        progress = await self.get(user_id, course_id)
        if progress is None:
            raise RuntimeError("course_progress row missing after upsert")
        return progress

    async def add_lecture(
        self, user_id: str, course_id: str, lecture_id: str
    ) -> CourseProgress:
        current = CourseProgressRow.completed_lectures
        stmt = pg_insert(CourseProgressRow).values(
            user_id=user_id, course_id=course_id, completed_lectures=[lecture_id]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CourseProgressRow.user_id, CourseProgressRow.course_id],
            set_={
                "completed_lectures": case(
                    (current.contains([lecture_id]), current),
                    else_=func.array_append(
                        current, lecture_id, type_=ARRAY(String(64))
                    ),
                )
            },
        ).returning(CourseProgressRow.completed_lectures)
        completed = (await self._session.execute(stmt)).scalar_one()
        return CourseProgress(
            user_id=user_id, course_id=course_id, completed_lectures=tuple(completed)
        )

    async def reset(self, user_id: str, course_id: str) -> CourseProgress | None:
        stmt = (
            update(CourseProgressRow)
            .where(
                CourseProgressRow.user_id == user_id,
                CourseProgressRow.course_id == course_id,
            )
            .values(completed_lectures=[])
            .returning(CourseProgressRow.user_id)
        )
        if (await self._session.execute(stmt)).scalar_one_or_none() is None:
            return None
        return CourseProgress(user_id=user_id, course_id=course_id)


def _row_to_progress(row: CourseProgressRow) -> CourseProgress:
    return CourseProgress(
        user_id=row.user_id,
        course_id=row.course_id,
        completed_lectures=tuple(row.completed_lectures or ()),
    )
