from __future__ import annotations

from typing import Protocol

from app.models.progress import CourseProgress


class ProgressRepo(Protocol):
    async def get(self, user_id: str, course_id: str) -> CourseProgress | None: ...
    async def get_or_create(self, user_id: str, course_id: str) -> CourseProgress: ...
    async def add_lecture(
        self, user_id: str, course_id: str, lecture_id: str
    ) -> CourseProgress: ...
    async def reset(self, user_id: str, course_id: str) -> CourseProgress | None: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], CourseProgress] = {}

    async def get(self, user_id: str, course_id: str) -> CourseProgress | None:
        return self._store.get((user_id, course_id))

    async def get_or_create(self, user_id: str, course_id: str) -> CourseProgress:
        return self._store.setdefault(
            (user_id, course_id), CourseProgress(user_id=user_id, course_id=course_id)
        )

    async def add_lecture(
        self, user_id: str, course_id: str, lecture_id: str
    ) -> CourseProgress:
        key = (user_id, course_id)
        current = self._store.get(key) or CourseProgress(
            user_id=user_id, course_id=course_id
        )
        updated = current.with_lecture(lecture_id)
        self._store[key] = updated
        return updated

    async def reset(self, user_id: str, course_id: str) -> CourseProgress | None:
        key = (user_id, course_id)
        existing = self._store.get(key)
        if existing is None:
            return None
        cleared = existing.cleared()
        self._store[key] = cleared
        return cleared
