"""Demo content for local development.

Loaded at startup when SEED_DEMO_DATA is on.  Seeding is skipped for
anything that already exists, so restarting against a persistent Redis
does not duplicate or reset data.
"""

from __future__ import annotations

import datetime
import logging

from app.models.access_code import SeatMode
from app.models.course import Checkpoint, Course, Question, VideoChapter
from app.repos.access_code_repo import AccessCodeRepo
from app.repos.course_repo import CourseRepo
from app.services import companies

logger = logging.getLogger(__name__)

_INTRO_TEXT = """\
Occupational Health and Safety (OHS) is not just a legal requirement. \
It is a commitment to the wellbeing of everyone in the building.

Based on Kosovo Law No. 04/L-161, this training gives you practical \
knowledge to keep yourself and your colleagues safe.

**What you will learn:**
• Your rights and legal responsibilities in the workplace.
• How to identify and handle hazards (fire, electricity, chemicals).
• Practical steps for emergencies and healthy posture at work.

This training takes about 25 minutes. Please make sure you are in a \
quiet place where you can listen to the audio or read the instructions \
carefully."""

_IMAGE = "https://images.unsplash.com/photo-{}?auto=format&fit=crop&q=80&w=600&h=300"

_TRUE_FALSE = ("True", "False")


def initial_course(*, created_at: int) -> Course:
    return Course(
        id="safety-general",
        title="OHS: Occupational Health and Safety",
        intro_text=_INTRO_TEXT,
        video_url="https://vimeo.com/placeholder1",
        created_at=created_at,
        video_duration=110,
        video_chapters=(
            VideoChapter(title="Law and Ethics", start_time=0),
            VideoChapter(title="Responsibilities", start_time=20),
            VideoChapter(title="Workplace Hazards", start_time=45),
            VideoChapter(title="Ergonomics", start_time=75),
            VideoChapter(title="Action Plan", start_time=95),
        ),
        checkpoints=(
            Checkpoint(
                time=30,
                question="Is the employer responsible for the cost of safety equipment?",
                options=("Yes, always", "No, the worker pays"),
                correct_index=0,
            ),
            Checkpoint(
                time=65,
                question="Which fire extinguisher class is specifically for electrical fires?",
                options=("Class A", "Class E"),
                correct_index=1,
            ),
            Checkpoint(
                time=100,
                question="In an emergency, what is the first priority?",
                options=("Checking the victim", "Making sure the scene is safe"),
                correct_index=1,
            ),
        ),
        questions=(
            Question(
                id=1,
                text="Health and safety is the responsibility of the manager only.",
                options=_TRUE_FALSE,
                correct_index=1,
                type="true-false",
                image_url=_IMAGE.format("1521737604893-d14cc237f11d"),
            ),
            Question(
                id=2,
                text="Employers must provide safety training at no cost to the worker.",
                options=_TRUE_FALSE,
                correct_index=0,
                type="true-false",
                image_url=_IMAGE.format("1524178232363-1fb28f74b573"),
            ),
            Question(
                id=3,
                text="Which law regulates occupational safety in Kosovo?",
                options=("Law No. 04/L-161", "Law No. 03/L-212"),
                correct_index=0,
                image_url=_IMAGE.format("1589829545856-d10d557cf95f"),
            ),
            Question(
                id=4,
                text="A hazard should be reported as soon as it is noticed.",
                options=_TRUE_FALSE,
                correct_index=0,
                type="true-false",
                image_url=_IMAGE.format("1590105577767-e21a46b530f6"),
            ),
            Question(
                id=5,
                text=(
                    "Scenario: You see a cable lying across a walkway where people "
                    "pass. What is your first action?"
                ),
                options=(
                    "Step over it",
                    "Report or fix it immediately",
                    "Wait until someone trips",
                ),
                correct_index=1,
                is_scenario=True,
                image_url=_IMAGE.format("1581235720704-06d3acfc136f"),
            ),
        ),
        is_active=True,
    )


# (company name, code, seat mode, allowance)
DEMO_COMPANIES: tuple[tuple[str, str, SeatMode, int], ...] = (
    ("Pristina Logistics Sh.p.k", "PRISTINA", "LIMITED", 5),
    ("ECK Training Partners", "START2025", "UNLIMITED", 0),
    ("Gjakova Manufacturing", "GJAKOVA", "UNLIMITED", 0),
    ("Peja Brewery", "PEJA", "LIMITED", 3),
)


async def seed_demo_data(
    codes: AccessCodeRepo, courses: CourseRepo, *, now: int | None = None
) -> None:
    now = int(datetime.datetime.now(datetime.UTC).timestamp()) if now is None else now

    course = initial_course(created_at=now)
    if await courses.get_by_id(course.id) is None:
        await courses.upsert(course)
        logger.info("Seeded course id=%s", course.id)

    for name, code, mode, allowance in DEMO_COMPANIES:
        if await codes.get_by_code(code) is not None:
            continue
        await companies.create_company(
            codes,
            courses,
            company_name=name,
            code=code,
            course_id=course.id,
            seat_mode=mode,
            seat_allowance=allowance,
            now=now,
        )
