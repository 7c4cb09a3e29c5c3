from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

QuestionType = Literal["multiple-choice", "true-false"]


@dataclass(frozen=True, slots=True)
class VideoChapter:
    title: str
    start_time: int


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """A question that pauses the video at ``time`` (seconds) until answered."""

    time: int
    question: str
    options: tuple[str, ...]
    correct_index: int


@dataclass(frozen=True, slots=True)
class Question:
    id: int
    text: str
    options: tuple[str, ...]
    correct_index: int
    type: QuestionType = "multiple-choice"
    is_scenario: bool = False
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class Course:
    """A training unit. Checkpoint and question order is presentation order."""

    id: str
    title: str
    intro_text: str
    video_url: str
    created_at: int
    video_duration: int = 0  # seconds; 0 when the client reports the end
    video_chapters: tuple[VideoChapter, ...] = ()
    checkpoints: tuple[Checkpoint, ...] = ()
    questions: tuple[Question, ...] = ()
    is_active: bool = True

    def checkpoint_at(self, time: int) -> Checkpoint | None:
        for cp in self.checkpoints:
            if cp.time == time:
                return cp
        return None
