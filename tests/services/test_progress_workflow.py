from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest
from prometheus_client import REGISTRY

from app.core.errors import ForbiddenError, NotFoundError
from app.models.course import Course, Lecture
from app.models.progress import ProgressSummary, completion_percentage
from app.repos.course_repo import InMemoryCourseRepo
from app.repos.progress_repo import InMemoryProgressRepo
from app.repos.purchase_repo import InMemoryPurchaseRepo
from app.services.progress_workflow import (
    ELIGIBLE_MESSAGE,
    NOT_ELIGIBLE_MESSAGE,
    ProgressWorkflow,
)

BUYER = "buyer-1"
INSTRUCTOR = "instructor-7"


def _sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


class _Env:
    def __init__(self, total_lectures: int = 4) -> None:
        course = Course(
            id="c1",
            title="Course",
            price=Decimal("500"),
            instructor_id=INSTRUCTOR,
            total_lectures=total_lectures,
            is_published=True,
            enrolled_students=frozenset({BUYER}),
        )
        lectures = [
            Lecture(id=chr(ord("A") + n), course_id="c1", title=f"L{n}", position=n)
            for n in range(total_lectures)
        ]
        self.courses = InMemoryCourseRepo([course], lectures)
        self.purchases = InMemoryPurchaseRepo()
        self.progress = InMemoryProgressRepo()
        self.workflow = ProgressWorkflow(self.courses, self.purchases, self.progress)
        asyncio.run(self.purchases.create(BUYER, "c1", "order_1", "pay_1"))

    def mark(self, lecture_id: str, user_id: str = BUYER) -> ProgressSummary:
        return asyncio.run(
            self.workflow.mark_lecture_complete(user_id, "c1", lecture_id)
        )


# ---- completion_percentage ----


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [
        (0, 0, 0),
        (3, 0, 0),
        (0, 4, 0),
        (2, 4, 50),
        (4, 4, 100),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds up
        (3, 8, 38),  # 37.5 rounds up
        (1, 200, 1),  # 0.5 rounds up
        (5, 4, 100),  # stale ids never push past 100
    ],
)
def test_completion_percentage(completed: int, total: int, expected: int) -> None:
    assert completion_percentage(completed, total) == expected


def test_completion_percentage_negative_total_is_zero() -> None:
    assert completion_percentage(1, -5) == 0


# ---- get_progress ----


def test_get_progress_without_record_is_zero_and_creates_nothing() -> None:
    env = _Env()
    summary = asyncio.run(env.workflow.get_progress(BUYER, "c1"))
    assert summary == ProgressSummary(
        completed_lectures=0, total_lectures=4, percentage=0
    )
    assert asyncio.run(env.progress.get(BUYER, "c1")) is None


def test_get_progress_unknown_course() -> None:
    env = _Env()
    with pytest.raises(NotFoundError):
        asyncio.run(env.workflow.get_progress(BUYER, "nope"))


# ---- mark_lecture_complete ----


def test_two_of_four_lectures_is_fifty_percent() -> None:
    env = _Env(total_lectures=4)
    env.mark("A")
    summary = env.mark("B")
    assert summary == ProgressSummary(
        completed_lectures=2, total_lectures=4, percentage=50
    )


def test_marking_same_lecture_twice_is_a_no_op() -> None:
    env = _Env()
    first = env.mark("A")
    second = env.mark("A")
    assert first.completed_lectures == 1
    assert second == first


def test_mark_counts_added_and_repeated() -> None:
    env = _Env()
    added = _sample("lecture_completions_total", {"result": "added"})
    repeated = _sample("lecture_completions_total", {"result": "already_completed"})

    env.mark("A")
    env.mark("A")

    assert _sample("lecture_completions_total", {"result": "added"}) - added == 1
    assert (
        _sample("lecture_completions_total", {"result": "already_completed"})
        - repeated
        == 1
    )


def test_percentage_never_decreases_until_reset() -> None:
    env = _Env(total_lectures=5)
    seen = []
    for lecture_id in ["A", "B", "B", "C", "A", "D", "E", "E"]:
        seen.append(env.mark(lecture_id).percentage)
    assert seen == sorted(seen)
    assert seen[-1] == 100

    cleared = asyncio.run(env.workflow.reset_progress(BUYER, "c1"))
    assert cleared is not None
    assert cleared.percentage == 0


def test_mark_requires_purchase() -> None:
    env = _Env()
    with pytest.raises(ForbiddenError):
        env.mark("A", user_id="stranger")
    assert asyncio.run(env.progress.get("stranger", "c1")) is None


def test_instructor_may_mark_without_purchase() -> None:
    env = _Env()
    summary = env.mark("A", user_id=INSTRUCTOR)
    assert summary.completed_lectures == 1


def test_mark_unknown_course() -> None:
    env = _Env()
    with pytest.raises(NotFoundError):
        asyncio.run(env.workflow.mark_lecture_complete(BUYER, "nope", "A"))


def test_zero_lecture_course_reports_zero_percent() -> None:
    env = _Env(total_lectures=0)
    summary = asyncio.run(env.workflow.get_progress(BUYER, "c1"))
    assert summary.percentage == 0
    with pytest.raises(NotFoundError):
        env.mark("A")


def test_mark_unknown_lecture_is_not_found() -> None:
    env = _Env(total_lectures=4)
    env.mark("A")
    with pytest.raises(NotFoundError) as exc_info:
        env.mark("not-a-lecture")
    assert exc_info.value.message == "Lecture not found"
    progress = asyncio.run(env.progress.get(BUYER, "c1"))
    assert progress is not None
    assert progress.completed_lectures == ("A",)


def test_marking_every_lecture_and_extras_stays_at_hundred() -> None:
    env = _Env(total_lectures=4)
    for lecture_id in ["A", "B", "C", "D"]:
        env.mark(lecture_id)
    with pytest.raises(NotFoundError):
        env.mark("E")

    summary = asyncio.run(env.workflow.get_progress(BUYER, "c1"))
    assert summary == ProgressSummary(
        completed_lectures=4, total_lectures=4, percentage=100
    )
    status = asyncio.run(env.workflow.check_completion(BUYER, "c1"))
    assert status.eligible is True


def test_lecture_of_another_course_is_not_found() -> None:
    env = _Env(total_lectures=2)
    asyncio.run(
        env.courses.add(
            Course(
                id="c2",
                title="Other",
                price=Decimal("100"),
                instructor_id=INSTRUCTOR,
                is_published=True,
            )
        )
    )
    asyncio.run(
        env.courses.add_lecture(
            Lecture(id="Z", course_id="c2", title="Elsewhere", position=1)
        )
    )
    with pytest.raises(NotFoundError):
        env.mark("Z")


def test_percentage_follows_current_lecture_count() -> None:
    env = _Env(total_lectures=2)
    env.mark("A")
    assert env.mark("B").percentage == 100

    # Catalogue grows after the learner finished.
    course = asyncio.run(env.courses.get("c1"))
    assert course is not None
    env.courses._by_id["c1"] = replace(course, total_lectures=4)

    summary = asyncio.run(env.workflow.get_progress(BUYER, "c1"))
    assert summary.percentage == 50


# ---- check_completion ----


def test_check_completion_not_eligible_creates_record() -> None:
    env = _Env()
    env.mark("A")
    status = asyncio.run(env.workflow.check_completion(BUYER, "c1"))
    assert status.eligible is False
    assert status.percentage == 25
    assert status.message == NOT_ELIGIBLE_MESSAGE


def test_check_completion_creates_empty_record_when_missing() -> None:
    env = _Env()
    status = asyncio.run(env.workflow.check_completion(BUYER, "c1"))
    assert status.percentage == 0
    progress = asyncio.run(env.progress.get(BUYER, "c1"))
    assert progress is not None
    assert progress.completed_lectures == ()


def test_check_completion_eligible_at_hundred() -> None:
    env = _Env(total_lectures=2)
    env.mark("A")
    env.mark("B")
    status = asyncio.run(env.workflow.check_completion(BUYER, "c1"))
    assert status.eligible is True
    assert status.percentage == 100
    assert status.message == ELIGIBLE_MESSAGE


def test_check_completion_requires_enrollment() -> None:
    env = _Env()
    with pytest.raises(ForbiddenError):
        asyncio.run(env.workflow.check_completion("stranger", "c1"))


# ---- reset_progress ----


def test_reset_without_record_is_none() -> None:
    env = _Env()
    assert asyncio.run(env.workflow.reset_progress(BUYER, "c1")) is None
    assert asyncio.run(env.progress.get(BUYER, "c1")) is None


def test_reset_keeps_record_and_empties_it() -> None:
    env = _Env()
    env.mark("A")
    env.mark("B")
    cleared = asyncio.run(env.workflow.reset_progress(BUYER, "c1"))
    assert cleared == ProgressSummary(
        completed_lectures=0, total_lectures=4, percentage=0
    )
    progress = asyncio.run(env.progress.get(BUYER, "c1"))
    assert progress is not None
    assert progress.completed_lectures == ()


def test_reset_requires_enrollment() -> None:
    env = _Env()
    with pytest.raises(ForbiddenError):
        asyncio.run(env.workflow.reset_progress("stranger", "c1"))
