from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal
from uuid import uuid4

SortBy = Literal["priceAsc", "priceDesc", "ratingDesc"]


@dataclass(frozen=True, slots=True)
class CourseRating:
    user_id: str
    value: int  # 1..5


@dataclass(frozen=True, slots=True)
class Course:
    """Catalogue entry as this service sees it.

    Courses are authored elsewhere; here they are read, and the only
    mutation is adding a buyer to ``enrolled_students``.
    """

    id: str
    title: str
    price: Decimal  # major currency units, e.g. rupees
    instructor_id: str
    total_lectures: int = 0
    is_published: bool = False
    enrolled_students: frozenset[str] = field(default_factory=frozenset)
    description: str = ""
    category: str | None = None
    level: str | None = None
    ratings: tuple[CourseRating, ...] = ()

    @staticmethod
    def new(
        *,
        title: str,
        price: Decimal | int | str,
        instructor_id: str,
        total_lectures: int = 0,
        is_published: bool = False,
        description: str = "",
        category: str | None = None,
        level: str | None = None,
    ) -> Course:
        return Course(
            id=str(uuid4()),
            title=title,
            price=Decimal(str(price)),
            instructor_id=instructor_id,
            total_lectures=total_lectures,
            is_published=is_published,
            description=description,
            category=category,
            level=level,
        )

    def is_instructor(self, user_id: str) -> bool:
        return self.instructor_id == user_id

    def is_enrolled(self, user_id: str) -> bool:
        return user_id in self.enrolled_students

    @property
    def average_rating(self) -> float:
        """Mean rating value, 0.0 for an unrated course."""
        if not self.ratings:
            return 0.0
        return sum(r.value for r in self.ratings) / len(self.ratings)

    def price_in_minor_units(self) -> int:
        """Price in the gateway's smallest unit (paise for INR)."""
        return int(
            (Decimal(str(self.price)) * 100).quantize(Decimal("1"), ROUND_HALF_UP)
        )


@dataclass(frozen=True, slots=True)
class CourseSearch:
    """Catalogue filters.  Unset fields do not filter.

    Only published courses are ever matched.  ``keyword`` is a
    case-insensitive substring of the title or description.
    """

    keyword: str | None = None
    category: str | None = None
    level: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    min_rating: float | None = None
    sort_by: SortBy | None = None
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def matches(self, course: Course) -> bool:
        if not course.is_published:
            return False
        if self.keyword:
            needle = self.keyword.casefold()
            if (
                needle not in course.title.casefold()
                and needle not in course.description.casefold()
            ):
                return False
        if self.category is not None and course.category != self.category:
            return False
        if self.level is not None and course.level != self.level:
            return False
        if self.min_price is not None and course.price < self.min_price:
            return False
        if self.max_price is not None and course.price > self.max_price:
            return False
        if self.min_rating is not None and course.average_rating < self.min_rating:
            return False
        return True

    def ordered(self, courses: list[Course]) -> list[Course]:
        """Title order, then the requested sort (stable, so ties keep title order)."""
        result = sorted(courses, key=lambda c: (c.title, c.id))
        if self.sort_by == "priceAsc":
            result.sort(key=lambda c: c.price)
        elif self.sort_by == "priceDesc":
            result.sort(key=lambda c: c.price, reverse=True)
        elif self.sort_by == "ratingDesc":
            result.sort(key=lambda c: c.average_rating, reverse=True)
        return result


@dataclass(frozen=True, slots=True)
class CoursePage:
    courses: list[Course]
    total: int
    page: int
    limit: int


@dataclass(frozen=True, slots=True)
class Lecture:
    id: str
    course_id: str
    title: str
    position: int
    video_url: str | None = None

    @staticmethod
    def new(
        *, course_id: str, title: str, position: int, video_url: str | None = None
    ) -> Lecture:
        return Lecture(
            id=str(uuid4()),
            course_id=course_id,
            title=title,
            position=position,
            video_url=video_url,
        )
