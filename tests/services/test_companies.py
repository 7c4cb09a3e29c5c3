from __future__ import annotations

import asyncio
import re
from uuid import uuid4

import pytest

from app.models.result import LearnerData, TestResult
from app.repos.access_code_repo import InMemoryAccessCodeRepo
from app.repos.course_repo import InMemoryCourseRepo
from app.repos.idempotency_repo import InMemoryIdempotencyRepo
from app.repos.result_repo import InMemoryResultRepo
from app.services import companies, seed
from app.services.companies import CompanyValidationError, DuplicateAccessCodeError

NOW = 1_750_000_000
DAY = 24 * 3600


@pytest.fixture
def codes() -> InMemoryAccessCodeRepo:
    return InMemoryAccessCodeRepo()


@pytest.fixture
def courses() -> InMemoryCourseRepo:
    repo = InMemoryCourseRepo()
    asyncio.run(repo.upsert(seed.initial_course(created_at=NOW)))
    return repo


def _create(codes, courses, **kwargs):
    return asyncio.run(companies.create_company(codes, courses, now=NOW, **kwargs))


def test_create_with_defaults(codes, courses) -> None:
    record = _create(codes, courses)
    assert re.fullmatch(r"[23456789ABCDEFGHJKLMNPQRSTUVWXYZ]{8}", record.code)
    assert record.company_name == "New Client"
    assert record.course_id == "safety-general"
    assert record.seat_mode == "UNLIMITED"
    assert record.seat_allowance == 5
    assert record.seats_used == 0
    assert record.expires_at == NOW + 30 * DAY
    assert [e.type for e in record.audit_log] == ["INITIAL"]


def test_create_with_explicit_code_normalizes_it(codes, courses) -> None:
    record = _create(
        codes, courses, code=" acme2025 ", company_name="Acme", seat_mode="LIMITED", seat_allowance=7
    )
    assert record.code == "ACME2025"
    assert record.audit_log[0].amount == 7
    assert asyncio.run(codes.get_by_code("acme2025")) == record


def test_duplicate_explicit_code_is_refused(codes, courses) -> None:
    _create(codes, courses, code="ACME")
    with pytest.raises(DuplicateAccessCodeError):
        _create(codes, courses, code="acme")


@pytest.mark.parametrize("code", ["A:B", "PE*", "P?JA", "[AB]", "two words"])
def test_code_outside_letters_digits_dash_is_refused(codes, courses, code) -> None:
    with pytest.raises(CompanyValidationError):
        _create(codes, courses, code=code)
    assert asyncio.run(codes.list_all()) == []


def test_delete_leaves_similar_codes_seat_markers(codes, courses) -> None:
    results, idempotency = InMemoryResultRepo(), InMemoryIdempotencyRepo()
    a = _create(codes, courses, code="A")
    _create(codes, courses, code="A-B")
    kept = LearnerData(first_name="Jo", last_name="Doe", company_name="Co", access_code="A-B")
    gone = LearnerData(first_name="Jo", last_name="Doe", company_name="Co", access_code="A")
    asyncio.run(idempotency.claim(kept.seat_key()))
    asyncio.run(idempotency.claim(gone.seat_key()))

    asyncio.run(companies.delete_company(codes, results, idempotency, a.id))

    assert asyncio.run(idempotency.exists(kept.seat_key()))
    assert not asyncio.run(idempotency.exists(gone.seat_key()))


def test_generated_code_retries_on_collision(codes, courses, monkeypatch) -> None:
    _create(codes, courses, code="TAKEN234")
    generated = iter(["TAKEN234", "TAKEN234", "FRESH234"])
    monkeypatch.setattr(companies, "generate_code", lambda: next(generated))
    assert _create(codes, courses).code == "FRESH234"


def test_unknown_course_is_refused(codes, courses) -> None:
    with pytest.raises(CompanyValidationError):
        _create(codes, courses, course_id="nope")


def test_empty_catalog_is_refused(codes) -> None:
    with pytest.raises(CompanyValidationError):
        _create(codes, InMemoryCourseRepo())


@pytest.mark.parametrize("kwargs", [{"seat_mode": "SOMETIMES"}, {"seat_allowance": -1}])
def test_bad_seat_settings_are_refused(codes, courses, kwargs) -> None:
    with pytest.raises(CompanyValidationError):
        _create(codes, courses, **kwargs)


def test_search_matches_name_or_code_newest_first(codes, courses) -> None:
    asyncio.run(companies.create_company(codes, courses, code="PEJA", company_name="Peja Brewery", now=NOW))
    asyncio.run(companies.create_company(codes, courses, code="GJAKOVA", company_name="Gjakova Mfg", now=NOW + 10))
    asyncio.run(companies.create_company(codes, courses, code="BREW2", company_name="Other", now=NOW + 20))

    found = asyncio.run(companies.search_companies(codes, "brew"))
    assert [r.code for r in found] == ["BREW2", "PEJA"]
    everything = asyncio.run(companies.search_companies(codes))
    assert [r.code for r in everything] == ["BREW2", "GJAKOVA", "PEJA"]


def test_delete_cascades_to_results_and_seat_markers(codes, courses) -> None:
    results, idempotency = InMemoryResultRepo(), InMemoryIdempotencyRepo()
    peja = _create(codes, courses, code="PEJA")
    _create(codes, courses, code="GJAKOVA")
    keys = []

    for i, code in enumerate(["PEJA", "PEJA", "GJAKOVA"]):
        learner = LearnerData(
            first_name=f"L{i}", last_name="X", company_name="Co", access_code=code
        )
        asyncio.run(
            results.add(
                TestResult.new(
                    completion_id=f"SH-AAAAAAA{i + 2}",
                    learner=learner,
                    course_name="OHS",
                    score=100,
                    attempts=1,
                    completed_at=NOW,
                    seat_consumed=True,
                    seat_mode_at_completion="LIMITED",
                )
            )
        )
        keys.append(learner.seat_key())
        asyncio.run(idempotency.claim(keys[-1]))

    deleted = asyncio.run(companies.delete_company(codes, results, idempotency, peja.id))

    assert deleted == peja
    assert asyncio.run(codes.get_by_code("PEJA")) is None
    remaining = asyncio.run(results.list_all())
    assert [r.learner.access_code for r in remaining] == ["GJAKOVA"]
    assert not asyncio.run(idempotency.exists(keys[0]))
    assert asyncio.run(idempotency.exists(keys[2]))


def test_delete_unknown_company(codes, courses) -> None:
    result = asyncio.run(
        companies.delete_company(codes, InMemoryResultRepo(), InMemoryIdempotencyRepo(), uuid4())
    )
    assert result is None


def test_invite_link_and_message() -> None:
    link = companies.invite_link("peja", base_url="https://training.example.com/")
    assert link == "https://training.example.com/?code=PEJA"
    message = companies.invite_message("peja", base_url="https://training.example.com")
    assert message.startswith("Health & Safety Online Training (ECK)\n\nLink: ")
    assert "Link: https://training.example.com/?code=PEJA\n" in message
    assert "2) Enter your name" in message
    assert message.endswith("Time required: ~25 minutes")


# ---- seed ----


def test_seed_is_idempotent() -> None:
    codes, courses = InMemoryAccessCodeRepo(), InMemoryCourseRepo()
    asyncio.run(seed.seed_demo_data(codes, courses, now=NOW))
    asyncio.run(seed.seed_demo_data(codes, courses, now=NOW + DAY))

    assert [c.id for c in asyncio.run(courses.list_all())] == ["safety-general"]
    records = {r.code: r for r in asyncio.run(codes.list_all())}
    assert set(records) == {"PRISTINA", "START2025", "GJAKOVA", "PEJA"}
    assert records["PEJA"].seat_mode == "LIMITED"
    assert records["PEJA"].seat_allowance == 3
    assert records["START2025"].seat_mode == "UNLIMITED"
    assert all(r.created_at == NOW for r in records.values())
