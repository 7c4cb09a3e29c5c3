from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from app.models.result import LearnerData


class TrainingStep(str, Enum):
    ENTRY = "ENTRY"
    INTRO = "INTRO"
    VIDEO = "VIDEO"
    TEST = "TEST"
    RESULT = "RESULT"


@dataclass(frozen=True, slots=True)
class LearnerSession:
    """Resumable state of one learner moving through a course.

    This is what gets persisted between requests.  A session in the
    RESULT step is returned to the client once and never stored.
    """

    session_id: str
    learner: LearnerData
    course_id: str
    step: TrainingStep = TrainingStep.ENTRY
    attempts: int = 0
    question_index: int = 0
    answers: dict[int, int] = field(default_factory=dict)  # question id -> option
    video_position: float = 0.0
    video_max_reached: float = 0.0
    completed_checkpoints: frozenset[int] = frozenset()  # checkpoint times
    active_checkpoint: int | None = None
    retry_score: int | None = None
    final_score: int | None = None
    completion_id: str | None = None
