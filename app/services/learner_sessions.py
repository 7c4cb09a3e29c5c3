"""Learner sessions: where the flow state machine meets the stores.

``learner_flow.transition`` decides; this service loads the session and
course, applies the transition, and executes the resulting effects.
"""

from __future__ import annotations

import dataclasses
import hmac
import logging
import uuid
from dataclasses import dataclass

from app.core.config import SETTINGS
from app.core.metrics import FLOW_TRANSITIONS
from app.models.access_code import normalize_code
from app.models.course import Course
from app.models.result import LearnerData
from app.models.session import LearnerSession, TrainingStep
from app.repos.access_code_repo import AccessCodeRepo, access_code_repo
from app.repos.course_repo import CourseRepo, course_repo
from app.repos.session_repo import SessionRepo, session_repo
from app.services import access_validator
from app.services.access_validator import ValidationResult
from app.services.learner_flow import (
    ClearSession,
    CodeAccepted,
    FlowEvent,
    PersistSession,
    RecordResult,
    transition,
)
from app.services.result_recorder import ResultRecorder, result_recorder

logger = logging.getLogger(__name__)


class LearnerDetailsError(ValueError):
    pass


class SessionNotFoundError(LookupError):
    pass


@dataclass(frozen=True, slots=True)
class EntryOutcome:
    """What happened when someone submitted the entry form.

    Exactly one of: ``admin`` is True, ``session`` is set, or
    ``rejection`` holds the failed validation.
    """

    admin: bool = False
    session: LearnerSession | None = None
    rejection: ValidationResult | None = None


def is_admin_pin(code: str, admin_pin: str) -> bool:
    return hmac.compare_digest(
        normalize_code(code).encode("utf-8"), admin_pin.encode("utf-8")
    )


class LearnerSessionService:
    def __init__(
        self,
        *,
        codes: AccessCodeRepo,
        courses: CourseRepo,
        sessions: SessionRepo,
        recorder: ResultRecorder,
        admin_pin: str,
    ) -> None:
        self._codes = codes
        self._courses = courses
        self._sessions = sessions
        self._recorder = recorder
        self._admin_pin = admin_pin

    async def enter(
        self,
        *,
        access_code: str,
        first_name: str,
        last_name: str,
        job_position: str | None = None,
    ) -> EntryOutcome:
        if is_admin_pin(access_code, self._admin_pin):
            logger.info("Admin PIN accepted at entry")
            return EntryOutcome(admin=True)

        first, last = first_name.strip(), last_name.strip()
        if not first or not last:
            raise LearnerDetailsError("first and last name are required")

        validation = await access_validator.validate_code(
            self._codes, self._courses, access_code
        )
        if not validation.valid:
            return EntryOutcome(rejection=validation)

        record = validation.access_code
        course = validation.course
        if record is None or course is None:
            raise RuntimeError("validator accepted a code without its record and course")

        learner = LearnerData(
            first_name=first,
            last_name=last,
            company_name=record.company_name,
            access_code=record.code,
            job_position=(job_position or "").strip() or None,
        )
        session = LearnerSession(
            session_id=str(uuid.uuid4()),
            learner=learner,
            course_id=course.id,
        )
        session = await self._apply(session, CodeAccepted(), course)
        logger.info(
            "Learner session started code=%s course=%s",
            record.code,
            course.id,
            extra={"access_code": record.code, "session_id": session.session_id},
        )
        return EntryOutcome(session=session)

    async def resume(self, session_id: str) -> LearnerSession | None:
        """Load a saved session, or None if there is nothing valid to resume.

        The access code is checked again: a code that expired or ran out
        of seats since the learner left ends the session.
        """
        session = await self._sessions.get(session_id)
        if session is None:
            return None

        if session.step == TrainingStep.RESULT:
            await self._sessions.delete(session_id)
            return None

        validation = await access_validator.validate_code(
            self._codes, self._courses, session.learner.access_code
        )
        if not validation.valid:
            logger.warning(
                "Discarding learner session: access code no longer valid reason=%s",
                validation.reason,
                extra={
                    "session_id": session_id,
                    "access_code": session.learner.access_code,
                },
            )
            await self._sessions.delete(session_id)
            return None
        return session

    async def course_for(self, session: LearnerSession) -> Course | None:
        return await self._courses.get_by_id(session.course_id)

    async def handle(self, session_id: str, event: FlowEvent) -> LearnerSession:
        """Apply one flow event to a stored session.

        Raises SessionNotFoundError if the session is gone and FlowError
        if the event is not allowed in the current step.
        """
        session = await self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        course = await self._courses.get_by_id(session.course_id)
        if course is None:
            await self._sessions.delete(session_id)
            raise SessionNotFoundError(session_id)
        return await self._apply(session, event, course)

    async def abandon(self, session_id: str) -> None:
        await self._sessions.delete(session_id)

    async def _apply(
        self, session: LearnerSession, event: FlowEvent, course: Course
    ) -> LearnerSession:
        result = transition(session, event, course)
        updated = result.session
        if updated.step != session.step:
            FLOW_TRANSITIONS.labels(step=updated.step.value).inc()

        for effect in result.effects:
            if isinstance(effect, RecordResult):
                recorded = await self._recorder.record_result(
                    updated.learner,
                    score=effect.score,
                    attempts=effect.attempts,
                    course_id=updated.course_id,
                )
                updated = dataclasses.replace(
                    updated,
                    completion_id=recorded.completion_id,
                    final_score=recorded.score,
                )
            elif isinstance(effect, PersistSession):
                await self._sessions.save(updated)
            elif isinstance(effect, ClearSession):
                await self._sessions.delete(updated.session_id)
        return updated


learner_session_service = LearnerSessionService(
    codes=access_code_repo,
    courses=course_repo,
    sessions=session_repo,
    recorder=result_recorder,
    admin_pin=SETTINGS.admin_pin,
)
