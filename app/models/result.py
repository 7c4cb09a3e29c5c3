from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from uuid import UUID, uuid4

from app.models.access_code import SeatMode, normalize_code

PASSING_SCORE = 80


def seat_key_prefix(access_code: str) -> str:
    """Prefix shared by every seat marker of one access code."""
    return f"seat:{normalize_code(access_code)}:"


@dataclass(frozen=True, slots=True)
class LearnerData:
    """Who is taking the training. Captured once, at code redemption."""

    first_name: str
    last_name: str
    company_name: str
    access_code: str
    job_position: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def seat_key(self) -> str:
        """Idempotency key for seat consumption: one seat per person per code.

        The names are hashed as a JSON pair, so no choice of first and
        last name can collide with another person's key.
        """
        identity = json.dumps(
            [self.first_name.strip().casefold(), self.last_name.strip().casefold()]
        )
        digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()
        return f"{seat_key_prefix(self.access_code)}{digest}"


@dataclass(frozen=True, slots=True)
class TestResult:
    """Immutable completion record.

    ``course_name`` and ``learner.company_name`` are snapshots taken at
    completion time; later renames of the course or company do not
    reach back into history.
    """

    __test__ = False  # not a pytest test class

    id: UUID
    completion_id: str
    learner: LearnerData
    course_name: str
    score: int
    passed: bool
    attempts: int
    completed_at: int
    seat_consumed: bool
    seat_mode_at_completion: SeatMode

    @staticmethod
    def new(
        *,
        completion_id: str,
        learner: LearnerData,
        course_name: str,
        score: int,
        attempts: int,
        completed_at: int,
        seat_consumed: bool,
        seat_mode_at_completion: SeatMode,
    ) -> TestResult:
        return TestResult(
            id=uuid4(),
            completion_id=completion_id,
            learner=learner,
            course_name=course_name,
            score=score,
            passed=score >= PASSING_SCORE,
            attempts=attempts,
            completed_at=completed_at,
            seat_consumed=seat_consumed,
            seat_mode_at_completion=seat_mode_at_completion,
        )
