"""Lecture completion, progress summaries and certificate eligibility.

Percentages are always derived from the completed set and the course's
lecture count at read time.  Nothing here stores a percentage or a
"completed" flag, so a course that gains lectures after a learner hit 100%
shows them below 100% again.
"""

from __future__ import annotations

import logging

from app.core.errors import ForbiddenError, NotFoundError
from app.core.metrics import LECTURE_COMPLETIONS
from app.models.course import Course
from app.models.progress import CompletionStatus, ProgressSummary
from app.repos.course_repo import CourseRepo
from app.repos.progress_repo import ProgressRepo
from app.repos.purchase_repo import PurchaseRepo
from app.services.purchase_workflow import is_entitled

logger = logging.getLogger(__name__)

ELIGIBLE_MESSAGE = "Now you are eligible for certificate"
NOT_ELIGIBLE_MESSAGE = (
    "You are not eligible for certificate, complete the remaining course"
)


class ProgressWorkflow:
    def __init__(
        self,
        courses: CourseRepo,
        purchases: PurchaseRepo,
        progress: ProgressRepo,
    ) -> None:
        self._courses = courses
        self._purchases = purchases
        self._progress = progress

    async def get_progress(self, user_id: str, course_id: str) -> ProgressSummary:
        """Summary for the caller; no record means 0% and nothing is created."""
        course = await self._require_course(course_id)
        progress = await self._progress.get(user_id, course_id)
        return ProgressSummary.of(progress, course.total_lectures)

    async def mark_lecture_complete(
        self, user_id: str, course_id: str, lecture_id: str
    ) -> ProgressSummary:
        course = await self._require_course(course_id)
        if not await is_entitled(self._purchases, user_id, course):
            logger.warning(
                "Lecture completion refused, not entitled user=%s course=%s",
                user_id,
                course_id,
            )
            raise ForbiddenError("You have not purchased this course")
        if await self._courses.get_lecture(course_id, lecture_id) is None:
            raise NotFoundError("Lecture not found")

        before = await self._progress.get(user_id, course_id)
        progress = await self._progress.add_lecture(user_id, course_id, lecture_id)
        added = before is None or progress.completed_count > before.completed_count
        LECTURE_COMPLETIONS.labels(
            result="added" if added else "already_completed"
        ).inc()

        logger.debug(
            "Lecture marked complete user=%s course=%s lecture=%s count=%d",
            user_id,
            course_id,
            lecture_id,
            progress.completed_count,
        )
        return ProgressSummary.of(progress, course.total_lectures)

    async def check_completion(self, user_id: str, course_id: str) -> CompletionStatus:
        course = await self._require_enrolled(user_id, course_id)
        progress = await self._progress.get_or_create(user_id, course_id)
        summary = ProgressSummary.of(progress, course.total_lectures)
        eligible = summary.percentage == 100
        return CompletionStatus(
            eligible=eligible,
            percentage=summary.percentage,
            message=ELIGIBLE_MESSAGE if eligible else NOT_ELIGIBLE_MESSAGE,
        )

    async def reset_progress(
        self, user_id: str, course_id: str
    ) -> ProgressSummary | None:
        """Clear the completed set.  None when there was nothing to reset."""
        course = await self._require_enrolled(user_id, course_id)
        cleared = await self._progress.reset(user_id, course_id)
        if cleared is None:
            return None
        logger.info("Progress reset user=%s course=%s", user_id, course_id)
        return ProgressSummary.of(cleared, course.total_lectures)

    async def _require_course(self, course_id: str) -> Course:
        course = await self._courses.get(course_id)
        if course is None:
            raise NotFoundError("Course not found")
        return course

    async def _require_enrolled(self, user_id: str, course_id: str) -> Course:
        course = await self._require_course(course_id)
        if not course.is_enrolled(user_id):
            raise ForbiddenError("You are not enrolled in this course")
        return course
