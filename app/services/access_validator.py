"""Access code validation.

``evaluate`` is the pure rule: given what the store holds for a code,
decide whether a learner may start.  ``validate_code`` does the lookups
and never raises: an unreadable record is treated the same as a
missing one.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Literal

from pydantic import ValidationError

from app.core.metrics import ACCESS_CODE_VALIDATIONS
from app.models.access_code import AccessCode, normalize_code
from app.models.course import Course
from app.repos.access_code_repo import AccessCodeRepo
from app.repos.course_repo import CourseRepo

logger = logging.getLogger(__name__)

RejectionReason = Literal["not_found", "expired", "no_seats", "course_unavailable"]

MESSAGES: dict[str, str] = {
    "not_found": "Access code not recognized.",
    "expired": "Access code has expired.",
    "no_seats": "No seats remaining for this code.",
    "course_unavailable": "Associated training is currently unavailable.",
}


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    reason: RejectionReason | None = None
    access_code: AccessCode | None = None
    course: Course | None = None

    @property
    def message(self) -> str | None:
        return MESSAGES[self.reason] if self.reason else None

    @staticmethod
    def reject(reason: RejectionReason) -> ValidationResult:
        return ValidationResult(valid=False, reason=reason)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def evaluate(
    record: AccessCode | None, course: Course | None, *, now: int
) -> ValidationResult:
    """Apply the checks in order; the first failure wins."""
    if record is None:
        return ValidationResult.reject("not_found")
    if record.is_expired(now):
        return ValidationResult.reject("expired")
    if record.is_limited and record.seats_used >= record.seat_allowance:
        return ValidationResult.reject("no_seats")
    if course is None or not course.is_active:
        return ValidationResult.reject("course_unavailable")
    return ValidationResult(valid=True, access_code=record, course=course)


async def validate_code(
    codes: AccessCodeRepo,
    courses: CourseRepo,
    code: str,
    *,
    now: int | None = None,
) -> ValidationResult:
    now = _now() if now is None else now
    key = normalize_code(code or "")

    record: AccessCode | None = None
    course: Course | None = None
    if key:
        try:
            record = await codes.get_by_code(key)
            if record is not None:
                course = await courses.get_by_id(record.course_id)
        except ValidationError:
            logger.warning(
                "Unreadable record while validating access code",
                extra={"access_code": key},
            )

    result = evaluate(record, course, now=now)
    ACCESS_CODE_VALIDATIONS.labels(outcome=result.reason or "valid").inc()
    if not result.valid:
        logger.info(
            "Access code rejected code=%s reason=%s",
            key,
            result.reason,
            extra={"access_code": key},
        )
    return result
