from __future__ import annotations

from dataclasses import dataclass


def completion_percentage(completed: int, total: int) -> int:
    """Whole-number percentage, rounding halves up.

    Integer arithmetic: floor(100*c/t + 1/2) == (200*c + t) // (2*t).
    A course with no lectures is 0% done, never a ZeroDivisionError.  Ids
    of lectures since removed from the course can leave ``completed`` above
    ``total``; the result is capped at 100.
    """
    if total <= 0:
        return 0
    completed = min(max(completed, 0), total)
    return (200 * completed + total) // (2 * total)


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Completed lecture ids for one (user, course).

    ``completed_lectures`` behaves as an insertion-ordered set; stores
    never append an id that is already present.
    """

    user_id: str
    course_id: str
    completed_lectures: tuple[str, ...] = ()

    @property
    def completed_count(self) -> int:
        return len(self.completed_lectures)

    def with_lecture(self, lecture_id: str) -> CourseProgress:
        if lecture_id in self.completed_lectures:
            return self
        return CourseProgress(
            user_id=self.user_id,
            course_id=self.course_id,
            completed_lectures=(*self.completed_lectures, lecture_id),
        )

    def cleared(self) -> CourseProgress:
        return CourseProgress(user_id=self.user_id, course_id=self.course_id)


@dataclass(frozen=True, slots=True)
class ProgressSummary:
    completed_lectures: int
    total_lectures: int
    percentage: int

    @staticmethod
    def of(progress: CourseProgress | None, total_lectures: int) -> ProgressSummary:
        completed = progress.completed_count if progress is not None else 0
        return ProgressSummary(
            completed_lectures=completed,
            total_lectures=total_lectures,
            percentage=completion_percentage(completed, total_lectures),
        )


@dataclass(frozen=True, slots=True)
class CompletionStatus:
    eligible: bool
    percentage: int
    message: str
