"""Company administration.

A "company" is an AccessCode record seen from the admin side: the name
on the invoice, the course it grants, and its seats.  Deleting a
company removes its learners' results and seat markers with it.
"""

from __future__ import annotations

import datetime
import logging
from uuid import UUID

from app.core.config import SETTINGS
from app.models.access_code import (
    DEFAULT_COMPANY_NAME,
    DEFAULT_EXPIRY_DAYS,
    DEFAULT_SEAT_ALLOWANCE,
    SEAT_MODES,
    AccessCode,
    SeatMode,
    generate_code,
    is_valid_code,
    normalize_code,
)
from app.models.result import seat_key_prefix
from app.repos.access_code_repo import AccessCodeRepo
from app.repos.course_repo import CourseRepo
from app.repos.idempotency_repo import IdempotencyRepo
from app.repos.result_repo import ResultRepo

logger = logging.getLogger(__name__)

_GENERATED_CODE_ATTEMPTS = 5


class CompanyValidationError(ValueError):
    pass


class DuplicateAccessCodeError(Exception):
    pass


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


async def create_company(
    codes: AccessCodeRepo,
    courses: CourseRepo,
    *,
    company_name: str | None = None,
    code: str | None = None,
    course_id: str | None = None,
    seat_mode: SeatMode = "UNLIMITED",
    seat_allowance: int | None = None,
    expires_at: int | None = None,
    now: int | None = None,
) -> AccessCode:
    now = _now() if now is None else now
    if seat_mode not in SEAT_MODES:
        raise CompanyValidationError(f"unknown seat mode {seat_mode!r}")
    allowance = DEFAULT_SEAT_ALLOWANCE if seat_allowance is None else seat_allowance
    if allowance < 0:
        raise CompanyValidationError("seat allowance must be >= 0")

    if course_id is None:
        catalog = await courses.list_all()
        if not catalog:
            raise CompanyValidationError("no course available to assign")
        course_id = catalog[0].id
    elif await courses.get_by_id(course_id) is None:
        raise CompanyValidationError(f"unknown course {course_id!r}")

    explicit = code is not None and bool(normalize_code(code))
    if explicit and not is_valid_code(code):
        raise CompanyValidationError(
            "access code may only contain letters, digits and '-'"
        )
    attempts = 1 if explicit else _GENERATED_CODE_ATTEMPTS
    for _ in range(attempts):
        record = AccessCode.new(
            code=code if explicit else generate_code(),
            company_name=(company_name or "").strip() or DEFAULT_COMPANY_NAME,
            course_id=course_id,
            seat_mode=seat_mode,
            seat_allowance=allowance,
            expires_at=(
                expires_at
                if expires_at is not None
                else now + DEFAULT_EXPIRY_DAYS * 24 * 3600
            ),
            created_at=now,
        )
        try:
            await codes.add(record)
        except ValueError:
            continue
        logger.info(
            "Company created code=%s mode=%s allowance=%d",
            record.code,
            record.seat_mode,
            record.seat_allowance,
            extra={"access_code": record.code},
        )
        return record
    raise DuplicateAccessCodeError(
        f"access code {normalize_code(code)!r} is already in use"
        if explicit
        else "could not generate an unused access code"
    )


async def get_company(codes: AccessCodeRepo, company_id: UUID) -> AccessCode | None:
    return await codes.get_by_id(company_id)


async def delete_company(
    codes: AccessCodeRepo,
    results: ResultRepo,
    idempotency: IdempotencyRepo,
    company_id: UUID,
) -> AccessCode | None:
    """Delete a company, its results, and its seat markers."""
    record = await codes.delete(company_id)
    if record is None:
        return None
    removed = await results.delete_by_access_code(record.code)
    await idempotency.purge_prefix(seat_key_prefix(record.code))
    logger.info(
        "Company deleted code=%s results_removed=%d",
        record.code,
        removed,
        extra={"access_code": record.code},
    )
    return record


async def search_companies(codes: AccessCodeRepo, search: str = "") -> list[AccessCode]:
    """Companies whose name or code contains ``search``, newest first."""
    needle = search.strip().casefold()
    records = await codes.list_all()
    if needle:
        records = [
            r
            for r in records
            if needle in r.company_name.casefold() or needle in r.code.casefold()
        ]
    return sorted(records, key=lambda r: r.created_at, reverse=True)


def invite_link(code: str, *, base_url: str | None = None) -> str:
    base = SETTINGS.public_base_url if base_url is None else base_url.rstrip("/")
    return f"{base}/?code={normalize_code(code)}"


def invite_message(code: str, *, base_url: str | None = None) -> str:
    link = invite_link(code, base_url=base_url)
    return (
        "Health & Safety Online Training (ECK)\n"
        "\n"
        f"Link: {link}\n"
        "\n"
        "Instructions:\n"
        "1) Open the link\n"
        "2) Enter your name\n"
        "3) Watch the video and complete the short test\n"
        "\n"
        "Time required: ~25 minutes"
    )
