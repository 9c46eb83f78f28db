"""Learner progress endpoints.

  GET   /v1/progress/{course_id}                         summary (0% if none)
  PATCH /v1/progress/{course_id}/lectures/{lecture_id}   mark complete
  PATCH /v1/progress/{course_id}/complete                certificate check
  PATCH /v1/progress/{course_id}/reset                   clear completed set
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.api.dependencies import (
    CourseIdPath,
    LectureIdPath,
    get_progress_workflow,
    require_user,
)
from app.models.principal import Principal
from app.models.progress import ProgressSummary
from app.services.progress_workflow import ProgressWorkflow

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProgressOut(_CamelModel):
    completed_lectures: int
    total_lectures: int
    percentage: int


class ProgressResponse(_CamelModel):
    status: str = "success"
    data: ProgressOut


class CompletionOut(_CamelModel):
    status: str = "success"
    eligible: bool
    percentage: int
    message: str


class ResetOut(_CamelModel):
    status: str = "success"
    message: str
    data: ProgressOut | None = None


def _progress_out(summary: ProgressSummary) -> ProgressOut:
    return ProgressOut(
        completed_lectures=summary.completed_lectures,
        total_lectures=summary.total_lectures,
        percentage=summary.percentage,
    )


@router.get(
    "/{course_id}", response_model=ProgressResponse, response_model_by_alias=True
)
async def get_progress(
    course_id: CourseIdPath,
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[ProgressWorkflow, Depends(get_progress_workflow)],
) -> ProgressResponse:
    summary = await workflow.get_progress(principal.user_id, course_id)
    return ProgressResponse(data=_progress_out(summary))


@router.patch(
    "/{course_id}/lectures/{lecture_id}",
    response_model=ProgressResponse,
    response_model_by_alias=True,
)
async def mark_lecture_complete(
    course_id: CourseIdPath,
    lecture_id: LectureIdPath,
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[ProgressWorkflow, Depends(get_progress_workflow)],
) -> ProgressResponse:
    summary = await workflow.mark_lecture_complete(
        principal.user_id, course_id, lecture_id
    )
    return ProgressResponse(data=_progress_out(summary))


@router.patch(
    "/{course_id}/complete",
    response_model=CompletionOut,
    response_model_by_alias=True,
)
async def check_completion(
    course_id: CourseIdPath,
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[ProgressWorkflow, Depends(get_progress_workflow)],
) -> CompletionOut:
    result = await workflow.check_completion(principal.user_id, course_id)
    return CompletionOut(
        eligible=result.eligible,
        percentage=result.percentage,
        message=result.message,
    )


@router.patch(
    "/{course_id}/reset", response_model=ResetOut, response_model_by_alias=True
)
async def reset_progress(
    course_id: CourseIdPath,
    principal: Annotated[Principal, Depends(require_user)],
    workflow: Annotated[ProgressWorkflow, Depends(get_progress_workflow)],
) -> ResetOut:
    summary = await workflow.reset_progress(principal.user_id, course_id)
    if summary is None:
        return ResetOut(message="No progress to reset")
    return ResetOut(message="Progress reset", data=_progress_out(summary))
