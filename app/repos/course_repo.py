from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol

from app.models.course import Course, CoursePage, CourseSearch, Lecture


class CourseRepo(Protocol):
    async def get(self, course_id: str) -> Course | None: ...
    async def get_many(self, course_ids: Iterable[str]) -> dict[str, Course]: ...
    async def list_published(self) -> list[Course]: ...
    async def search(self, query: CourseSearch) -> CoursePage: ...
    async def list_lectures(self, course_id: str) -> list[Lecture]: ...
    async def get_lecture(
        self, course_id: str, lecture_id: str
    ) -> Lecture | None: ...
    async def add_student(self, course_id: str, user_id: str) -> None: ...
    async def add(self, course: Course) -> None: ...
    async def add_lecture(self, lecture: Lecture) -> None: ...


class InMemoryCourseRepo:
    def __init__(
        self, courses: Iterable[Course] = (), lectures: Iterable[Lecture] = ()
    ) -> None:
        self._by_id: dict[str, Course] = {c.id: c for c in courses}
        self._lectures: dict[str, list[Lecture]] = {}
        for lecture in lectures:
            self._lectures.setdefault(lecture.course_id, []).append(lecture)

    async def get(self, course_id: str) -> Course | None:
        return self._by_id.get(course_id)

    async def get_many(self, course_ids: Iterable[str]) -> dict[str, Course]:
        return {cid: self._by_id[cid] for cid in course_ids if cid in self._by_id}

    async def list_published(self) -> list[Course]:
        return [c for c in self._by_id.values() if c.is_published]

    async def search(self, query: CourseSearch) -> CoursePage:
        matched = query.ordered([c for c in self._by_id.values() if query.matches(c)])
        return CoursePage(
            courses=matched[query.offset : query.offset + query.limit],
            total=len(matched),
            page=query.page,
            limit=query.limit,
        )

    async def list_lectures(self, course_id: str) -> list[Lecture]:
        return sorted(self._lectures.get(course_id, []), key=lambda lec: lec.position)

    async def get_lecture(self, course_id: str, lecture_id: str) -> Lecture | None:
        for lecture in self._lectures.get(course_id, []):
            if lecture.id == lecture_id:
                return lecture
        return None

    async def add_student(self, course_id: str, user_id: str) -> None:
        course = self._by_id.get(course_id)
        if course is None:
            raise KeyError("course not found")
        if course.is_enrolled(user_id):
            return
        self._by_id[course_id] = replace(
            course, enrolled_students=course.enrolled_students | {user_id}
        )

    async def add(self, course: Course) -> None:
        if course.id in self._by_id:
            raise ValueError("course already exists")
        self._by_id[course.id] = course

    async def add_lecture(self, lecture: Lecture) -> None:
        course = self._by_id.get(lecture.course_id)
        if course is None:
            raise KeyError("course not found")
        lectures = self._lectures.setdefault(lecture.course_id, [])
        lectures.append(lecture)
        self._by_id[course.id] = replace(course, total_lectures=len(lectures))
