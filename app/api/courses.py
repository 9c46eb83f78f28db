"""Catalogue, search and lecture content endpoints.

Courses are authored by another service; this router only reads them.
Search and details cover published courses (instructors also see their
own drafts in details).  Lecture content (video URLs) is served to the
course's instructor and to users holding a purchase.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.dependencies import CourseIdPath, require_user
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.db.stores import Stores, get_stores
from app.models.course import Course, CourseSearch, SortBy
from app.models.principal import Principal
from app.services.purchase_workflow import is_entitled

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])

MAX_PAGE_SIZE = 100


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CourseOut(_CamelModel):
    id: str
    title: str
    price: str
    total_lectures: int
    instructor_id: str
    category: str | None = None
    level: str | None = None
    average_rating: float = 0.0

    @classmethod
    def of(cls, course: Course) -> CourseOut:
        return cls(
            id=course.id,
            title=course.title,
            price=str(course.price),
            total_lectures=course.total_lectures,
            instructor_id=course.instructor_id,
            category=course.category,
            level=course.level,
            average_rating=round(course.average_rating, 2),
        )


class CourseSearchOut(_CamelModel):
    status: str = "success"
    results: int
    total: int
    page: int
    limit: int
    courses: list[CourseOut]


class LectureSummaryOut(_CamelModel):
    id: str
    title: str
    position: int


class CourseDetailOut(CourseOut):
    description: str
    ratings_count: int
    is_published: bool
    lectures: list[LectureSummaryOut]


class CourseDetailResponse(_CamelModel):
    status: str = "success"
    course: CourseDetailOut


class LectureOut(_CamelModel):
    id: str
    title: str
    position: int
    video_url: str | None


@router.get("", response_model=list[CourseOut], response_model_by_alias=True)
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[CourseOut]:
    courses = await stores.courses.list_published()
    return [CourseOut.of(c) for c in courses]


# Must precede /{course_id}.
@router.get("/search", response_model=CourseSearchOut, response_model_by_alias=True)
async def search_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
    keyword: Annotated[str | None, Query(max_length=200)] = None,
    category: Annotated[str | None, Query(max_length=100)] = None,
    level: Annotated[str | None, Query(max_length=32)] = None,
    min_price: Annotated[Decimal | None, Query(alias="minPrice", ge=0)] = None,
    max_price: Annotated[Decimal | None, Query(alias="maxPrice", ge=0)] = None,
    min_rating: Annotated[float | None, Query(alias="minRating", ge=0, le=5)] = None,
    sort_by: Annotated[SortBy | None, Query(alias="sortBy")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
) -> CourseSearchOut:
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationError("minPrice must not exceed maxPrice")

    result = await stores.courses.search(
        CourseSearch(
            keyword=keyword.strip() if keyword else None,
            category=category,
            level=level,
            min_price=min_price,
            max_price=max_price,
            min_rating=min_rating,
            sort_by=sort_by,
            page=page,
            limit=limit,
        )
    )
    return CourseSearchOut(
        results=len(result.courses),
        total=result.total,
        page=result.page,
        limit=result.limit,
        courses=[CourseOut.of(c) for c in result.courses],
    )


@router.get(
    "/{course_id}",
    response_model=CourseDetailResponse,
    response_model_by_alias=True,
)
async def get_course(
    course_id: CourseIdPath,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> CourseDetailResponse:
    course = await stores.courses.get(course_id)
    if course is None or (
        not course.is_published and not course.is_instructor(principal.user_id)
    ):
        raise NotFoundError("Course not found")

    lectures = await stores.courses.list_lectures(course_id)
    summary = CourseOut.of(course)
    return CourseDetailResponse(
        course=CourseDetailOut(
            **summary.model_dump(),
            description=course.description,
            ratings_count=len(course.ratings),
            is_published=course.is_published,
            # Titles only; video URLs are behind /lectures.
            lectures=[
                LectureSummaryOut(id=lec.id, title=lec.title, position=lec.position)
                for lec in lectures
            ],
        )
    )


@router.get(
    "/{course_id}/lectures",
    response_model=list[LectureOut],
    response_model_by_alias=True,
)
async def list_lectures(
    course_id: CourseIdPath,
    principal: Annotated[Principal, Depends(require_user)],
    stores: Annotated[Stores, Depends(get_stores)],
) -> list[LectureOut]:
    course = await stores.courses.get(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if not await is_entitled(stores.purchases, principal.user_id, course):
        logger.warning(
            "Lecture access denied user=%s course=%s", principal.user_id, course_id
        )
        raise ForbiddenError("You have not purchased this course")

    lectures = await stores.courses.list_lectures(course_id)
    return [
        LectureOut(
            id=lec.id,
            title=lec.title,
            position=lec.position,
            video_url=lec.video_url,
        )
        for lec in lectures
    ]
