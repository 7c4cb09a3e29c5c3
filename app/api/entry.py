"""Learner entry: code resolution, validation, and starting a session.

A learner arrives with an invite link (``/?code=ACME`` or ``/ACME``),
a saved session cookie, or nothing at all and types the code.  The
entry form posts the code and the learner's name to ``POST /v1/entry``.

The same form doubles as the admin gate: entering the admin PIN as the
access code returns an admin bearer token instead of starting a
session.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import BaseModel

from app.api.dependencies import (
    clear_session_cookie,
    get_session_id,
    set_session_cookie,
)
from app.api.schemas import SessionOut
from app.repos.access_code_repo import access_code_repo
from app.repos.course_repo import course_repo
from app.services import access_validator, token_service
from app.services.learner_flow import resolve_entry_code
from app.services.learner_sessions import LearnerDetailsError, learner_session_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["entry"])


class EntryResolutionOut(BaseModel):
    code: str | None
    source: str | None
    session: SessionOut | None = None


class EntryIn(BaseModel):
    access_code: str
    first_name: str = ""
    last_name: str = ""
    job_position: str | None = None


class AdminTokenOut(BaseModel):
    admin: bool = True
    access_token: str
    token_type: str = "bearer"


class ValidateIn(BaseModel):
    code: str


class ValidateOut(BaseModel):
    valid: bool
    reason: str | None = None
    message: str | None = None
    company_name: str | None = None
    course_id: str | None = None


async def _resolve(
    request: Request,
    response: Response,
    path_code: str | None,
    query_code: str | None,
) -> EntryResolutionOut:
    session = None
    session_id = get_session_id(request)
    if session_id is not None:
        session = await learner_session_service.resume(session_id)
        if session is None:
            clear_session_cookie(response)

    resolution = resolve_entry_code(
        path_code=path_code,
        query_code=query_code,
        session_code=session.learner.access_code if session else None,
    )
    return EntryResolutionOut(
        code=resolution.code,
        source=resolution.source,
        session=SessionOut.from_session(session) if session else None,
    )


@router.get("/v1/entry", response_model=EntryResolutionOut)
async def get_entry(
    request: Request, response: Response, code: str | None = None
) -> EntryResolutionOut:
    return await _resolve(request, response, None, code)


@router.get("/v1/entry/{path_code}", response_model=EntryResolutionOut)
async def get_entry_with_code(
    path_code: str, request: Request, response: Response, code: str | None = None
) -> EntryResolutionOut:
    return await _resolve(request, response, path_code, code)


@router.post(
    "/v1/entry",
    response_model=SessionOut | AdminTokenOut,
    status_code=status.HTTP_201_CREATED,
)
async def post_entry(body: EntryIn, response: Response) -> SessionOut | AdminTokenOut:
    try:
        outcome = await learner_session_service.enter(
            access_code=body.access_code,
            first_name=body.first_name,
            last_name=body.last_name,
            job_position=body.job_position,
        )
    except LearnerDetailsError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        ) from None

    if outcome.admin:
        response.status_code = status.HTTP_200_OK
        return AdminTokenOut(access_token=token_service.create_admin_token())

    if outcome.rejection is not None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=outcome.rejection.message,
        )

    if outcome.session is None:
        raise RuntimeError("entry produced neither a session nor a rejection")
    set_session_cookie(response, outcome.session.session_id)
    return SessionOut.from_session(outcome.session)


@router.post("/v1/access-codes/validate", response_model=ValidateOut)
async def validate_access_code(body: ValidateIn) -> ValidateOut:
    result = await access_validator.validate_code(
        access_code_repo, course_repo, body.code
    )
    return ValidateOut(
        valid=result.valid,
        reason=result.reason,
        message=result.message,
        company_name=result.access_code.company_name if result.access_code else None,
        course_id=result.course.id if result.course else None,
    )
