"""The learner's path through a course: ENTRY → INTRO → VIDEO → TEST → RESULT.

This module is pure.  ``transition`` takes the current session, one
event, and the course being taken, and returns the next session plus a
tuple of effects for the caller to execute:

    PersistSession  save the new session
    ClearSession    drop it from the store (the flow is over)
    RecordResult    write the final quiz outcome

Nothing here touches a repository, so every rule can be tested with
plain values.

Video rules
-----------
The client reports playback with ``VideoProgress``.  A progress report
can never carry the learner past a checkpoint they have not answered:
the position stops at the first open checkpoint, which becomes active,
and further progress is ignored until ``AnswerCheckpoint``.  ``Seek``
can only move within what has already been watched.

Quiz rules
----------
Answers are kept per question id.  ``NextQuestion`` on the last
question scores the attempt.  A learner who scores below the pass mark
on their first attempt gets one more; the second attempt is final
either way.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Literal, Union

from app.models.access_code import normalize_code
from app.models.course import Course
from app.models.result import PASSING_SCORE
from app.models.session import LearnerSession, TrainingStep

MAX_ATTEMPTS = 2


class FlowError(Exception):
    """An event that is not allowed in the session's current state."""


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CodeAccepted:
    pass


@dataclass(frozen=True, slots=True)
class StartVideo:
    pass


@dataclass(frozen=True, slots=True)
class BackToIntro:
    pass


@dataclass(frozen=True, slots=True)
class VideoProgress:
    position: float


@dataclass(frozen=True, slots=True)
class Seek:
    position: float


@dataclass(frozen=True, slots=True)
class AnswerCheckpoint:
    option_index: int


@dataclass(frozen=True, slots=True)
class CompleteVideo:
    pass


@dataclass(frozen=True, slots=True)
class SelectAnswer:
    option_index: int


@dataclass(frozen=True, slots=True)
class NextQuestion:
    pass


@dataclass(frozen=True, slots=True)
class PreviousQuestion:
    pass


@dataclass(frozen=True, slots=True)
class RetryQuiz:
    pass


@dataclass(frozen=True, slots=True)
class ReviewVideo:
    pass


FlowEvent = Union[
    CodeAccepted,
    StartVideo,
    BackToIntro,
    VideoProgress,
    Seek,
    AnswerCheckpoint,
    CompleteVideo,
    SelectAnswer,
    NextQuestion,
    PreviousQuestion,
    RetryQuiz,
    ReviewVideo,
]


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PersistSession:
    pass


@dataclass(frozen=True, slots=True)
class ClearSession:
    pass


@dataclass(frozen=True, slots=True)
class RecordResult:
    score: int
    attempts: int


Effect = Union[PersistSession, ClearSession, RecordResult]


@dataclass(frozen=True, slots=True)
class Transition:
    session: LearnerSession
    effects: tuple[Effect, ...] = ()


def _persist(session: LearnerSession) -> Transition:
    return Transition(session, (PersistSession(),))


# ---------------------------------------------------------------------------
# Entry code resolution
# ---------------------------------------------------------------------------

EntrySource = Literal["path", "query", "session", "manual"]


@dataclass(frozen=True, slots=True)
class EntryResolution:
    code: str | None
    source: EntrySource | None


def resolve_entry_code(
    *,
    path_code: str | None = None,
    query_code: str | None = None,
    session_code: str | None = None,
    manual_code: str | None = None,
) -> EntryResolution:
    """Pick the code to prefill: path, then query, then resumed session, then typed."""
    candidates: tuple[tuple[EntrySource, str | None], ...] = (
        ("path", path_code),
        ("query", query_code),
        ("session", session_code),
        ("manual", manual_code),
    )
    for source, raw in candidates:
        if raw and raw.strip():
            return EntryResolution(code=normalize_code(raw), source=source)
    return EntryResolution(code=None, source=None)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def score_answers(course: Course, answers: dict[int, int]) -> int:
    """Percentage of correct answers, halves rounded up."""
    total = len(course.questions)
    if total == 0:
        return 0
    correct = sum(1 for q in course.questions if answers.get(q.id) == q.correct_index)
    return math.floor(correct * 100 / total + 0.5)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _code_accepted(session, event, course) -> Transition:
    return _persist(dataclasses.replace(session, step=TrainingStep.INTRO))


def _start_video(session, event, course) -> Transition:
    return _persist(dataclasses.replace(session, step=TrainingStep.VIDEO))


def _back_to_intro(session, event, course) -> Transition:
    return _persist(dataclasses.replace(session, step=TrainingStep.INTRO))


def _clamp(position: float, upper: float | None) -> float:
    position = max(position, 0.0)
    if upper is not None:
        position = min(position, upper)
    return position


def _video_progress(session: LearnerSession, event: VideoProgress, course: Course) -> Transition:
    if session.active_checkpoint is not None:
        return Transition(session)

    position = _clamp(event.position, course.video_duration or None)
    active = None
    for cp in sorted(course.checkpoints, key=lambda c: c.time):
        if cp.time in session.completed_checkpoints:
            continue
        if cp.time <= position:
            position = float(cp.time)
            active = cp.time
        break

    return _persist(
        dataclasses.replace(
            session,
            video_position=position,
            video_max_reached=max(session.video_max_reached, position),
            active_checkpoint=active,
        )
    )


def _seek(session: LearnerSession, event: Seek, course: Course) -> Transition:
    if session.active_checkpoint is not None:
        return Transition(session)
    position = _clamp(event.position, session.video_max_reached)
    return _persist(dataclasses.replace(session, video_position=position))


def _answer_checkpoint(
    session: LearnerSession, event: AnswerCheckpoint, course: Course
) -> Transition:
    if session.active_checkpoint is None:
        raise FlowError("no checkpoint is waiting for an answer")
    cp = course.checkpoint_at(session.active_checkpoint)
    if cp is not None and not 0 <= event.option_index < len(cp.options):
        raise FlowError(f"option {event.option_index} does not exist")
    return _persist(
        dataclasses.replace(
            session,
            completed_checkpoints=session.completed_checkpoints
            | {session.active_checkpoint},
            active_checkpoint=None,
        )
    )


def _complete_video(session: LearnerSession, event: CompleteVideo, course: Course) -> Transition:
    if session.active_checkpoint is not None:
        raise FlowError("a checkpoint is waiting for an answer")
    if any(cp.time not in session.completed_checkpoints for cp in course.checkpoints):
        raise FlowError("not every checkpoint has been answered")
    if course.video_duration and session.video_max_reached < course.video_duration:
        raise FlowError("the video has not been watched to the end")
    return _persist(
        dataclasses.replace(
            session, step=TrainingStep.TEST, question_index=0, answers={}
        )
    )


def _require_quiz_in_progress(session: LearnerSession, course: Course) -> None:
    if session.retry_score is not None:
        raise FlowError("choose whether to retry the quiz or review the video")
    if not 0 <= session.question_index < len(course.questions):
        raise FlowError("the course has no question at this position")


def _select_answer(session: LearnerSession, event: SelectAnswer, course: Course) -> Transition:
    _require_quiz_in_progress(session, course)
    question = course.questions[session.question_index]
    if not 0 <= event.option_index < len(question.options):
        raise FlowError(f"option {event.option_index} does not exist")
    answers = {**session.answers, question.id: event.option_index}
    return _persist(dataclasses.replace(session, answers=answers))


def _previous_question(
    session: LearnerSession, event: PreviousQuestion, course: Course
) -> Transition:
    _require_quiz_in_progress(session, course)
    if session.question_index == 0:
        raise FlowError("already at the first question")
    return _persist(
        dataclasses.replace(session, question_index=session.question_index - 1)
    )


def _next_question(session: LearnerSession, event: NextQuestion, course: Course) -> Transition:
    _require_quiz_in_progress(session, course)
    question = course.questions[session.question_index]
    if question.id not in session.answers:
        raise FlowError("answer the current question first")

    if session.question_index < len(course.questions) - 1:
        return _persist(
            dataclasses.replace(session, question_index=session.question_index + 1)
        )

    score = score_answers(course, session.answers)
    attempts = session.attempts + 1
    if score >= PASSING_SCORE or attempts >= MAX_ATTEMPTS:
        finished = dataclasses.replace(
            session,
            step=TrainingStep.RESULT,
            attempts=attempts,
            final_score=score,
            retry_score=None,
        )
        return Transition(finished, (RecordResult(score=score, attempts=attempts), ClearSession()))

    return _persist(
        dataclasses.replace(
            session,
            attempts=attempts,
            retry_score=score,
            answers={},
            question_index=0,
        )
    )


def _retry_quiz(session: LearnerSession, event: RetryQuiz, course: Course) -> Transition:
    if session.retry_score is None:
        raise FlowError("there is no failed attempt to retry")
    return _persist(
        dataclasses.replace(session, retry_score=None, answers={}, question_index=0)
    )


def _review_video(session: LearnerSession, event: ReviewVideo, course: Course) -> Transition:
    if session.retry_score is None:
        raise FlowError("there is no failed attempt to review")
    return _persist(
        dataclasses.replace(
            session,
            step=TrainingStep.VIDEO,
            retry_score=None,
            answers={},
            question_index=0,
            video_position=0.0,
        )
    )


_HANDLERS = {
    (TrainingStep.ENTRY, CodeAccepted): _code_accepted,
    (TrainingStep.INTRO, StartVideo): _start_video,
    (TrainingStep.VIDEO, BackToIntro): _back_to_intro,
    (TrainingStep.VIDEO, VideoProgress): _video_progress,
    (TrainingStep.VIDEO, Seek): _seek,
    (TrainingStep.VIDEO, AnswerCheckpoint): _answer_checkpoint,
    (TrainingStep.VIDEO, CompleteVideo): _complete_video,
    (TrainingStep.TEST, SelectAnswer): _select_answer,
    (TrainingStep.TEST, NextQuestion): _next_question,
    (TrainingStep.TEST, PreviousQuestion): _previous_question,
    (TrainingStep.TEST, RetryQuiz): _retry_quiz,
    (TrainingStep.TEST, ReviewVideo): _review_video,
}


def transition(session: LearnerSession, event: FlowEvent, course: Course) -> Transition:
    handler = _HANDLERS.get((session.step, type(event)))
    if handler is None:
        raise FlowError(
            f"{type(event).__name__} is not allowed in step {session.step.value}"
        )
    return handler(session, event, course)
