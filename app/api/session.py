"""The learner's running session: restore, course content, flow events.

The client drives the flow by posting events; the server decides what
they mean.  Event types map one-to-one onto the flow state machine:

    start_video, back_to_intro, complete_video
    video_progress {position}, seek {position}
    answer_checkpoint {option_index}, select_answer {option_index}
    next_question, previous_question, retry_quiz, review_video

When an event finishes the quiz the response carries the final score
and completion id, and the session cookie is cleared.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from app.api.dependencies import clear_session_cookie, require_session_id
from app.api.schemas import LearnerCourseOut, SessionOut
from app.models.session import TrainingStep
from app.services import learner_flow
from app.services.learner_flow import FlowError
from app.services.learner_sessions import SessionNotFoundError, learner_session_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/session", tags=["session"])

EventType = Literal[
    "start_video",
    "back_to_intro",
    "video_progress",
    "seek",
    "answer_checkpoint",
    "complete_video",
    "select_answer",
    "next_question",
    "previous_question",
    "retry_quiz",
    "review_video",
]

_SIMPLE_EVENTS = {
    "start_video": learner_flow.StartVideo,
    "back_to_intro": learner_flow.BackToIntro,
    "complete_video": learner_flow.CompleteVideo,
    "next_question": learner_flow.NextQuestion,
    "previous_question": learner_flow.PreviousQuestion,
    "retry_quiz": learner_flow.RetryQuiz,
    "review_video": learner_flow.ReviewVideo,
}


class FlowEventIn(BaseModel):
    type: EventType
    position: float | None = None
    option_index: int | None = None

    def to_event(self) -> learner_flow.FlowEvent:
        if self.type in _SIMPLE_EVENTS:
            return _SIMPLE_EVENTS[self.type]()
        if self.type in ("video_progress", "seek"):
            if self.position is None:
                raise ValueError(f"{self.type} requires position")
            cls = learner_flow.VideoProgress if self.type == "video_progress" else learner_flow.Seek
            return cls(position=self.position)
        if self.option_index is None:
            raise ValueError(f"{self.type} requires option_index")
        if self.type == "answer_checkpoint":
            return learner_flow.AnswerCheckpoint(option_index=self.option_index)
        return learner_flow.SelectAnswer(option_index=self.option_index)


def _session_gone(response: Response) -> HTTPException:
    clear_session_cookie(response)
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="No active training session",
        headers={"set-cookie": response.headers["set-cookie"]},
    )


@router.get("", response_model=SessionOut)
async def get_session(
    session_id: Annotated[str, Depends(require_session_id)],
    response: Response,
) -> SessionOut:
    session = await learner_session_service.resume(session_id)
    if session is None:
        raise _session_gone(response)
    return SessionOut.from_session(session)


@router.get("/course", response_model=LearnerCourseOut)
async def get_session_course(
    session_id: Annotated[str, Depends(require_session_id)],
    response: Response,
) -> LearnerCourseOut:
    session = await learner_session_service.resume(session_id)
    if session is None:
        raise _session_gone(response)
    course = await learner_session_service.course_for(session)
    if course is None:
        raise _session_gone(response)
    return LearnerCourseOut.model_validate(course)


@router.post("/events", response_model=SessionOut)
async def post_event(
    body: FlowEventIn,
    session_id: Annotated[str, Depends(require_session_id)],
    response: Response,
) -> SessionOut:
    try:
        event = body.to_event()
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        ) from None

    try:
        session = await learner_session_service.handle(session_id, event)
    except SessionNotFoundError:
        raise _session_gone(response) from None
    except FlowError as e:
        logger.info(
            "Flow event rejected type=%s: %s",
            body.type,
            e,
            extra={"session_id": session_id},
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from None

    if session.step == TrainingStep.RESULT:
        clear_session_cookie(response)
    return SessionOut.from_session(session)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: Annotated[str, Depends(require_session_id)],
    response: Response,
) -> None:
    await learner_session_service.abandon(session_id)
    clear_session_cookie(response)
