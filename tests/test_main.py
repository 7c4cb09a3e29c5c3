from __future__ import annotations

import asyncio
import dataclasses

import pytest
from fastapi.testclient import TestClient

from app import main
from app.repos.access_code_repo import access_code_repo
from app.repos.course_repo import course_repo


def _run_lifespan(monkeypatch: pytest.MonkeyPatch, *, seed: bool) -> None:
    monkeypatch.setattr(main, "SETTINGS", dataclasses.replace(main.SETTINGS, seed_demo_data=seed))
    with TestClient(main.app) as client:
        assert client.get("/health").status_code == 200


def test_startup_seeds_demo_data(monkeypatch: pytest.MonkeyPatch) -> None:
    _run_lifespan(monkeypatch, seed=True)

    codes = sorted(c.code for c in asyncio.run(access_code_repo.list_all()))
    assert codes == ["GJAKOVA", "PEJA", "PRISTINA", "START2025"]
    courses = asyncio.run(course_repo.list_all())
    assert len(courses) == 1
    assert courses[0].is_active


def test_startup_seeding_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    _run_lifespan(monkeypatch, seed=True)
    _run_lifespan(monkeypatch, seed=True)
    assert len(asyncio.run(access_code_repo.list_all())) == 4


def test_startup_without_seeding_leaves_stores_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    _run_lifespan(monkeypatch, seed=False)
    assert asyncio.run(access_code_repo.list_all()) == []


def test_every_router_is_mounted() -> None:
    paths = {getattr(r, "path", None) for r in main.app.routes}
    for expected in (
        "/health",
        "/ready",
        "/metrics",
        "/v1/entry",
        "/v1/session/events",
        "/v1/certificates/{completion_id}/verify",
        "/v1/admin/companies",
        "/v1/admin/results",
        "/v1/admin/courses",
    ):
        assert expected in paths
