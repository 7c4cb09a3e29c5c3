from __future__ import annotations

import datetime
import logging
import secrets

from app.models.course import Course, VideoChapter
from app.repos.course_repo import CourseRepo

logger = logging.getLogger(__name__)


class CourseValidationError(ValueError):
    """Raised with every structural problem found, not just the first."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems))
        self.problems = problems


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def _check_options(where: str, options: tuple[str, ...], correct_index: int) -> list[str]:
    problems: list[str] = []
    if len(options) < 2:
        problems.append(f"{where}: needs at least 2 options")
    if any(not opt.strip() for opt in options):
        problems.append(f"{where}: options must be non-empty")
    if not 0 <= correct_index < len(options):
        problems.append(f"{where}: correct_index {correct_index} is out of range")
    return problems


def validate_course_structure(course: Course) -> list[str]:
    problems: list[str] = []
    if not course.id.strip():
        problems.append("id must be non-empty")
    if not course.title.strip():
        problems.append("title must be non-empty")
    if course.video_duration < 0:
        problems.append("video_duration must be >= 0")

    for chapter in course.video_chapters:
        if chapter.start_time < 0:
            problems.append(f"chapter {chapter.title!r}: start_time must be >= 0")

    seen_times: set[int] = set()
    for cp in course.checkpoints:
        where = f"checkpoint at {cp.time}s"
        if cp.time < 0:
            problems.append(f"{where}: time must be >= 0")
        if course.video_duration and cp.time > course.video_duration:
            problems.append(f"{where}: after the end of the video")
        if cp.time in seen_times:
            problems.append(f"{where}: duplicate time")
        seen_times.add(cp.time)
        if not cp.question.strip():
            problems.append(f"{where}: question must be non-empty")
        problems.extend(_check_options(where, cp.options, cp.correct_index))

    seen_ids: set[int] = set()
    for q in course.questions:
        where = f"question {q.id}"
        if q.id in seen_ids:
            problems.append(f"{where}: duplicate id")
        seen_ids.add(q.id)
        if not q.text.strip():
            problems.append(f"{where}: text must be non-empty")
        problems.extend(_check_options(where, q.options, q.correct_index))

    if course.is_active and not course.questions:
        problems.append("an active course needs at least one question")
    return problems


def new_course_template(*, now: int | None = None) -> Course:
    """An editable draft. Inactive until it has questions."""
    return Course(
        id=f"course-{secrets.token_hex(4)}",
        title="New Training Course",
        intro_text="Enter introduction here...",
        video_url="",
        created_at=_now() if now is None else now,
        video_chapters=(VideoChapter(title="Intro", start_time=0),),
        is_active=False,
    )


async def list_courses(repo: CourseRepo) -> list[Course]:
    return await repo.list_all()


async def get_course(repo: CourseRepo, course_id: str) -> Course | None:
    return await repo.get_by_id(course_id)


async def save_course(repo: CourseRepo, course: Course) -> Course:
    problems = validate_course_structure(course)
    if problems:
        raise CourseValidationError(problems)
    await repo.upsert(course)
    logger.info(
        "Course saved id=%s active=%s questions=%d",
        course.id,
        course.is_active,
        len(course.questions),
    )
    return course


async def set_active(repo: CourseRepo, course_id: str, is_active: bool) -> Course | None:
    existing = await repo.get_by_id(course_id)
    if existing is None:
        return None
    if is_active and not existing.questions:
        raise CourseValidationError(["an active course needs at least one question"])
    updated = await repo.set_active(course_id, is_active)
    if updated is not None:
        logger.info("Course %s id=%s", "activated" if is_active else "deactivated", course_id)
    return updated
