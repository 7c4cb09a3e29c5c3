from __future__ import annotations

import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.api.dependencies import require_role
from app.api.schemas import CourseModel
from app.repos.course_repo import course_repo
from app.services import course_catalog

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/admin/courses",
    tags=["admin"],
    dependencies=[Depends(require_role("admin"))],
)


class ActiveIn(BaseModel):
    is_active: bool


def _invalid(e: course_catalog.CourseValidationError) -> HTTPException:
    logger.warning("Course rejected: %s", e)
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        detail=e.problems,
    )


@router.get("", response_model=list[CourseModel])
async def list_courses() -> list[CourseModel]:
    courses = await course_catalog.list_courses(course_repo)
    return [CourseModel.model_validate(c) for c in courses]


# Declared before /{course_id} so "template" is not read as an id.
@router.get("/template", response_model=CourseModel)
async def course_template() -> CourseModel:
    return CourseModel.model_validate(course_catalog.new_course_template())


@router.get("/{course_id}", response_model=CourseModel)
async def get_course(course_id: str) -> CourseModel:
    course = await course_catalog.get_course(course_repo, course_id)
    if course is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found",
        )
    return CourseModel.model_validate(course)


@router.put("/{course_id}", response_model=CourseModel)
async def put_course(course_id: str, body: CourseModel) -> CourseModel:
    if body.id != course_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="course id in the body does not match the URL",
        )
    existing = await course_repo.get_by_id(course_id)
    created_at = (
        existing.created_at
        if existing is not None
        else int(datetime.datetime.now(datetime.UTC).timestamp())
    )
    try:
        saved = await course_catalog.save_course(
            course_repo, body.to_domain(created_at=created_at)
        )
    except course_catalog.CourseValidationError as e:
        raise _invalid(e) from None
    return CourseModel.model_validate(saved)


@router.put("/{course_id}/active", response_model=CourseModel)
async def set_course_active(course_id: str, body: ActiveIn) -> CourseModel:
    try:
        updated = await course_catalog.set_active(course_repo, course_id, body.is_active)
    except course_catalog.CourseValidationError as e:
        raise _invalid(e) from None
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found",
        )
    return CourseModel.model_validate(updated)
