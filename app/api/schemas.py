"""Request/response bodies shared by more than one router.

Domain objects are frozen dataclasses; these pydantic models are the
wire shape.  Outbound models read dataclass attributes directly
(``from_attributes``), so properties such as ``seats_remaining`` come
along for free.
"""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.access_code import AccessCode
from app.models.course import Checkpoint, Course, Question, VideoChapter
from app.models.result import PASSING_SCORE, TestResult
from app.models.session import LearnerSession
from app.services.reporting import Page


class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    timestamp: int
    amount: int | None = None
    total_limit: int | None = None
    mode: str | None = None


class CompanyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    company_name: str
    course_id: str
    seat_mode: str
    seat_allowance: int
    seats_used: int
    seats_remaining: int | None
    expires_at: int
    created_at: int
    audit_log: list[AuditEntryOut]


class CompanyPageOut(BaseModel):
    items: list[CompanyOut]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page[AccessCode]) -> CompanyPageOut:
        return cls(
            items=[CompanyOut.model_validate(r) for r in page.items],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
        )


class LearnerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_name: str
    last_name: str
    company_name: str
    access_code: str
    job_position: str | None = None


class ResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    completion_id: str
    learner: LearnerOut
    course_name: str
    score: int
    passed: bool
    attempts: int
    completed_at: int
    seat_consumed: bool
    seat_mode_at_completion: str


class ResultPageOut(BaseModel):
    items: list[ResultOut]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page[TestResult]) -> ResultPageOut:
        return cls(
            items=[ResultOut.model_validate(r) for r in page.items],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
        )


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


class ChapterModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    start_time: int


class CheckpointModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time: int
    question: str
    options: list[str]
    correct_index: int


class QuestionModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    options: list[str]
    correct_index: int
    type: Literal["multiple-choice", "true-false"] = "multiple-choice"
    is_scenario: bool = False
    image_url: str | None = None


class CourseModel(BaseModel):
    """Full course document, as edited by admins."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    intro_text: str = ""
    video_url: str = ""
    video_duration: int = 0
    video_chapters: list[ChapterModel] = Field(default_factory=list)
    checkpoints: list[CheckpointModel] = Field(default_factory=list)
    questions: list[QuestionModel] = Field(default_factory=list)
    is_active: bool = True
    created_at: int = 0

    def to_domain(self, *, created_at: int) -> Course:
        return Course(
            id=self.id,
            title=self.title,
            intro_text=self.intro_text,
            video_url=self.video_url,
            created_at=created_at,
            video_duration=self.video_duration,
            video_chapters=tuple(
                VideoChapter(title=c.title, start_time=c.start_time)
                for c in self.video_chapters
            ),
            checkpoints=tuple(
                Checkpoint(
                    time=cp.time,
                    question=cp.question,
                    options=tuple(cp.options),
                    correct_index=cp.correct_index,
                )
                for cp in self.checkpoints
            ),
            questions=tuple(
                Question(
                    id=q.id,
                    text=q.text,
                    options=tuple(q.options),
                    correct_index=q.correct_index,
                    type=q.type,
                    is_scenario=q.is_scenario,
                    image_url=q.image_url,
                )
                for q in self.questions
            ),
            is_active=self.is_active,
        )


class LearnerCheckpointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time: int
    question: str
    options: list[str]


class LearnerQuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    options: list[str]
    type: str
    is_scenario: bool
    image_url: str | None = None


class LearnerCourseOut(BaseModel):
    """What a learner sees of a course: no answer keys."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    intro_text: str
    video_url: str
    video_duration: int
    video_chapters: list[ChapterModel]
    checkpoints: list[LearnerCheckpointOut]
    questions: list[LearnerQuestionOut]


# ---------------------------------------------------------------------------
# Learner sessions
# ---------------------------------------------------------------------------


class SessionOut(BaseModel):
    session_id: str
    step: str
    learner: LearnerOut
    course_id: str
    attempts: int
    question_index: int
    answers: dict[int, int]
    video_position: float
    video_max_reached: float
    completed_checkpoints: list[int]
    active_checkpoint: int | None
    retry_score: int | None
    final_score: int | None
    completion_id: str | None
    passed: bool | None

    @classmethod
    def from_session(cls, session: LearnerSession) -> SessionOut:
        return cls(
            session_id=session.session_id,
            step=session.step.value,
            learner=LearnerOut.model_validate(session.learner),
            course_id=session.course_id,
            attempts=session.attempts,
            question_index=session.question_index,
            answers=dict(session.answers),
            video_position=session.video_position,
            video_max_reached=session.video_max_reached,
            completed_checkpoints=sorted(session.completed_checkpoints),
            active_checkpoint=session.active_checkpoint,
            retry_score=session.retry_score,
            final_score=session.final_score,
            completion_id=session.completion_id,
            passed=(
                session.final_score >= PASSING_SCORE
                if session.final_score is not None
                else None
            ),
        )
