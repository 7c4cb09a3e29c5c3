"""Recording a learner's final quiz outcome.

A result is always written.  A seat is spent only when the learner
passed, the code is in LIMITED mode, and this person has not already
been charged on this code.  The idempotency key is claimed before the
counter moves; if the counter refuses (pool exhausted by a concurrent
finisher), the claim is released and the result is stored with
``seat_consumed=False``.
"""

from __future__ import annotations

import datetime
import logging
import secrets

from app.core.metrics import RESULTS_RECORDED, SEAT_CONSUMPTION_REFUSED
from app.models.access_code import AccessCode
from app.models.result import PASSING_SCORE, LearnerData, TestResult
from app.repos.access_code_repo import AccessCodeRepo, access_code_repo
from app.repos.course_repo import CourseRepo, course_repo
from app.repos.idempotency_repo import IdempotencyRepo, idempotency_repo
from app.repos.result_repo import ResultRepo, result_repo
from app.services import seat_ledger

logger = logging.getLogger(__name__)

COMPLETION_ID_PREFIX = "SH-"
_COMPLETION_ID_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
_COMPLETION_ID_LENGTH = 8
_MAX_ID_ATTEMPTS = 5


class ResultRecordingError(Exception):
    pass


def generate_completion_id() -> str:
    body = "".join(
        secrets.choice(_COMPLETION_ID_ALPHABET) for _ in range(_COMPLETION_ID_LENGTH)
    )
    return f"{COMPLETION_ID_PREFIX}{body}"


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class ResultRecorder:
    def __init__(
        self,
        *,
        codes: AccessCodeRepo,
        courses: CourseRepo,
        results: ResultRepo,
        idempotency: IdempotencyRepo,
    ) -> None:
        self._codes = codes
        self._courses = courses
        self._results = results
        self._idempotency = idempotency

    async def record_result(
        self,
        learner: LearnerData,
        *,
        score: int,
        attempts: int,
        course_id: str,
        now: int | None = None,
    ) -> TestResult:
        if not 0 <= score <= 100:
            raise ValueError("score must be between 0 and 100")
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        now = _now() if now is None else now

        record = await self._codes.get_by_code(learner.access_code)
        course = await self._courses.get_by_id(course_id)
        passed = score >= PASSING_SCORE

        seat_consumed = False
        if passed:
            seat_consumed = await self._spend_seat_once(learner, record)

        result = await self._store(
            learner=learner,
            course_name=course.title if course is not None else "Unknown Training",
            score=score,
            attempts=attempts,
            completed_at=now,
            seat_consumed=seat_consumed,
            seat_mode_at_completion=(
                record.seat_mode if record is not None else "UNLIMITED"
            ),
        )

        RESULTS_RECORDED.labels(outcome="pass" if passed else "fail").inc()
        logger.info(
            "Result recorded completion_id=%s score=%d passed=%s seat_consumed=%s",
            result.completion_id,
            score,
            passed,
            seat_consumed,
            extra={
                "completion_id": result.completion_id,
                "access_code": learner.access_code,
            },
        )
        return result

    async def _spend_seat_once(
        self, learner: LearnerData, record: AccessCode | None
    ) -> bool:
        key = learner.seat_key()
        if await self._idempotency.exists(key):
            return True
        if record is None or not record.is_limited:
            return False
        if not await self._idempotency.claim(key):
            # Another finalization for this person got there first.
            return True

        updated = await seat_ledger.consume_seat(self._codes, record.code)
        if updated is None:
            await self._idempotency.release(key)
            SEAT_CONSUMPTION_REFUSED.inc()
            logger.warning(
                "Seat pool exhausted at completion code=%s",
                record.code,
                extra={"access_code": record.code},
            )
            return False
        return True

    async def _store(self, **fields) -> TestResult:
        for _ in range(_MAX_ID_ATTEMPTS):
            completion_id = generate_completion_id()
            if await self._results.get_by_completion_id(completion_id) is not None:
                continue
            result = TestResult.new(completion_id=completion_id, **fields)
            try:
                await self._results.add(result)
            except ValueError:
                continue
            return result
        raise ResultRecordingError("could not allocate a unique completion id")


result_recorder = ResultRecorder(
    codes=access_code_repo,
    courses=course_repo,
    results=result_repo,
    idempotency=idempotency_repo,
)
