from __future__ import annotations

import asyncio
import datetime
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.access_code import AccessCode, SeatMode
from app.models.course import Course
from app.repos.access_code_repo import InMemoryAccessCodeRepo, access_code_repo
from app.repos.course_repo import InMemoryCourseRepo, course_repo
from app.repos.idempotency_repo import InMemoryIdempotencyRepo, idempotency_repo
from app.repos.result_repo import InMemoryResultRepo, result_repo
from app.repos.session_repo import InMemorySessionRepo, session_repo
from app.services import token_service
from app.services.seed import initial_course

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DAY = 24 * 3600


def now_ts() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Empty every in-memory store between tests."""
    if isinstance(access_code_repo, InMemoryAccessCodeRepo):
        access_code_repo._by_code.clear()
    if isinstance(course_repo, InMemoryCourseRepo):
        course_repo._by_id.clear()
    if isinstance(result_repo, InMemoryResultRepo):
        result_repo._results.clear()
    if isinstance(idempotency_repo, InMemoryIdempotencyRepo):
        idempotency_repo._keys.clear()
    if isinstance(session_repo, InMemorySessionRepo):
        session_repo._store.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_token() -> str:
    return token_service.create_admin_token()


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def course() -> Course:
    """The demo safety course, stored in the catalog."""
    c = initial_course(created_at=now_ts())
    asyncio.run(course_repo.upsert(c))
    return c


@pytest.fixture
def make_company(course: Course):
    """Factory: store an access code for the demo course and return it."""

    def _make(
        code: str = "ACME",
        *,
        seat_mode: SeatMode = "UNLIMITED",
        seat_allowance: int = 0,
        expires_in: int = 30 * DAY,
        company_name: str = "Acme Ltd",
    ) -> AccessCode:
        now = now_ts()
        record = AccessCode.new(
            code=code,
            company_name=company_name,
            course_id=course.id,
            seat_mode=seat_mode,
            seat_allowance=seat_allowance,
            expires_at=now + expires_in,
            created_at=now,
        )
        asyncio.run(access_code_repo.add(record))
        return record

    return _make
