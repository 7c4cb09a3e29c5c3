from __future__ import annotations

import logging
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from app.api.dependencies import require_role
from app.api.schemas import CompanyOut, CompanyPageOut, ResultPageOut
from app.models.access_code import AccessCode, SettingsChange
from app.repos.access_code_repo import access_code_repo
from app.repos.course_repo import course_repo
from app.repos.idempotency_repo import idempotency_repo
from app.repos.result_repo import result_repo
from app.services import companies, reporting, seat_ledger

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/admin/companies",
    tags=["admin"],
    dependencies=[Depends(require_role("admin"))],
)


class CompanyCreateIn(BaseModel):
    company_name: str | None = None
    code: str | None = None
    course_id: str | None = None
    seat_mode: Literal["UNLIMITED", "LIMITED"] = "UNLIMITED"
    seat_allowance: int | None = None
    expires_at: int | None = None


class SettingsIn(BaseModel):
    company_name: str | None = None
    course_id: str | None = None
    seat_mode: Literal["UNLIMITED", "LIMITED"] | None = None
    seat_allowance: int | None = None
    expires_at: int | None = None


class TopUpIn(BaseModel):
    seats: int = Field(gt=0)


class InviteOut(BaseModel):
    code: str
    link: str
    message: str


async def _company_or_404(company_id: UUID) -> AccessCode:
    record = await companies.get_company(access_code_repo, company_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found",
        )
    return record


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        detail=str(e),
    )


@router.get("", response_model=CompanyPageOut)
async def list_companies(
    search: str = "",
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=reporting.MAX_PAGE_SIZE)] = 10,
) -> CompanyPageOut:
    records = await companies.search_companies(access_code_repo, search)
    return CompanyPageOut.from_page(reporting.paginate(records, page, page_size))


@router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
async def create_company(body: CompanyCreateIn) -> CompanyOut:
    try:
        record = await companies.create_company(
            access_code_repo,
            course_repo,
            company_name=body.company_name,
            code=body.code,
            course_id=body.course_id,
            seat_mode=body.seat_mode,
            seat_allowance=body.seat_allowance,
            expires_at=body.expires_at,
        )
    except companies.DuplicateAccessCodeError as e:
        logger.warning("Duplicate access code rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="access code already exists",
        ) from None
    except companies.CompanyValidationError as e:
        raise _bad_request(e) from None
    return CompanyOut.model_validate(record)


@router.get("/{company_id}", response_model=CompanyOut)
async def get_company(company_id: UUID) -> CompanyOut:
    return CompanyOut.model_validate(await _company_or_404(company_id))


@router.patch("/{company_id}", response_model=CompanyOut)
async def update_company(company_id: UUID, body: SettingsIn) -> CompanyOut:
    if body.course_id is not None and await course_repo.get_by_id(body.course_id) is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"unknown course {body.course_id!r}",
        )
    change = SettingsChange(**body.model_dump())
    try:
        updated = await seat_ledger.update_settings(access_code_repo, company_id, change)
    except seat_ledger.SeatLedgerError as e:
        raise _bad_request(e) from None
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found",
        )
    return CompanyOut.model_validate(updated)


@router.post("/{company_id}/top-up", response_model=CompanyOut)
async def top_up(company_id: UUID, body: TopUpIn) -> CompanyOut:
    try:
        updated = await seat_ledger.top_up(access_code_repo, company_id, body.seats)
    except seat_ledger.SeatLedgerError as e:
        raise _bad_request(e) from None
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found",
        )
    return CompanyOut.model_validate(updated)


@router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_company(company_id: UUID) -> None:
    removed = await companies.delete_company(
        access_code_repo, result_repo, idempotency_repo, company_id
    )
    if removed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found",
        )


@router.get("/{company_id}/invite", response_model=InviteOut)
async def get_invite(company_id: UUID) -> InviteOut:
    record = await _company_or_404(company_id)
    return InviteOut(
        code=record.code,
        link=companies.invite_link(record.code),
        message=companies.invite_message(record.code),
    )


@router.get("/{company_id}/results", response_model=ResultPageOut)
async def list_company_results(
    company_id: UUID,
    search: str = "",
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=reporting.MAX_PAGE_SIZE)] = 10,
) -> ResultPageOut:
    record = await _company_or_404(company_id)
    results = reporting.filter_results(
        await result_repo.list_by_access_code(record.code), search
    )
    return ResultPageOut.from_page(reporting.paginate(results, page, page_size))


@router.get("/{company_id}/results.csv")
async def export_company_results(company_id: UUID) -> Response:
    record = await _company_or_404(company_id)
    results = reporting.newest_first(await result_repo.list_by_access_code(record.code))
    return Response(
        content=reporting.results_csv(results),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="Results_{record.code}.csv"'
        },
    )
