from __future__ import annotations

import csv
import io

import pytest

from app.models.result import LearnerData, TestResult
from app.services import reporting

NOON = 1_749_988_800  # 2025-06-15 12:00 UTC
DAY = 24 * 3600


def _result(
    first: str = "Arta",
    last: str = "Krasniqi",
    *,
    company: str = "Acme Ltd",
    course: str = "OHS: Occupational Health and Safety",
    score: int = 100,
    at: int = NOON,
    completion_id: str = "SH-AAAAAAAA",
) -> TestResult:
    learner = LearnerData(
        first_name=first, last_name=last, company_name=company, access_code="ACME"
    )
    return TestResult.new(
        completion_id=completion_id,
        learner=learner,
        course_name=course,
        score=score,
        attempts=1,
        completed_at=at,
        seat_consumed=False,
        seat_mode_at_completion="UNLIMITED",
    )


# ---- paginate ----


def test_paginate_slices_and_counts() -> None:
    page = reporting.paginate(list(range(25)), page=3, page_size=10)
    assert page.items == [20, 21, 22, 23, 24]
    assert page.total == 25
    assert page.total_pages == 3


def test_page_past_the_end_is_empty() -> None:
    page = reporting.paginate(list(range(5)), page=4, page_size=10)
    assert page.items == []
    assert page.total_pages == 1


@pytest.mark.parametrize("page, size", [(0, 10), (1, 0), (1, 101)])
def test_paginate_rejects_bad_bounds(page: int, size: int) -> None:
    with pytest.raises(ValueError):
        reporting.paginate([1, 2, 3], page=page, page_size=size)


# ---- search ----


def test_filter_matches_name_company_and_course_case_insensitively() -> None:
    results = [
        _result("Arta", "Krasniqi", company="Acme Ltd"),
        _result("Blerim", "Hoxha", company="Peja Brewery"),
        _result("Drita", "Berisha", course="Fire Safety"),
    ]
    assert [r.learner.first_name for r in reporting.filter_results(results, "ARTA")] == ["Arta"]
    assert [r.learner.first_name for r in reporting.filter_results(results, "hoxha")] == ["Blerim"]
    assert [r.learner.first_name for r in reporting.filter_results(results, "brew")] == ["Blerim"]
    assert [r.learner.first_name for r in reporting.filter_results(results, "fire")] == ["Drita"]


def test_empty_search_returns_everything_newest_first() -> None:
    results = [_result("Old", at=NOON - DAY), _result("New", at=NOON)]
    ordered = reporting.filter_results(results, "  ")
    assert [r.learner.first_name for r in ordered] == ["New", "Old"]


# ---- CSV ----


def test_csv_has_header_and_one_row_per_result() -> None:
    results = [
        _result(score=90, completion_id="SH-AAAAAAAA"),
        _result("Blerim", "Hoxha", score=40, completion_id="SH-BBBBBBBB", at=NOON - DAY),
    ]
    text = reporting.results_csv(results)

    lines = text.splitlines()
    assert len(lines) == len(results) + 1
    assert lines[0] == "Completion ID,Training,Learner,Company,Status,Date"
    rows = list(csv.reader(io.StringIO(text)))
    assert all(len(row) == 6 for row in rows)
    assert rows[1] == [
        "SH-AAAAAAAA",
        "OHS: Occupational Health and Safety",
        "Arta Krasniqi",
        "Acme Ltd",
        "Pass",
        "2025-06-15",
    ]
    assert rows[2][4] == "Fail"
    assert rows[2][5] == "2025-06-14"


def test_csv_quotes_commas_in_fields() -> None:
    text = reporting.results_csv([_result(company="Smith, Jones & Co")])
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[1][3] == "Smith, Jones & Co"
    assert len(rows[1]) == 6


def test_csv_of_nothing_is_just_the_header() -> None:
    assert reporting.results_csv([]) == "Completion ID,Training,Learner,Company,Status,Date\n"


# ---- dashboard ----


def test_dashboard_counts_only_passes() -> None:
    results = [
        _result(score=100, at=NOON),
        _result(score=80, at=NOON - 2 * DAY),
        _result(score=40, at=NOON),
        _result(score=90, at=NOON - 45 * DAY),
    ]
    stats = reporting.dashboard_stats(4, results, range_days=7, now=NOON)
    assert stats.total_companies == 4
    assert stats.total_completions == 3
    assert stats.recent_completions == 2


def test_daily_trend_is_oldest_first_and_zero_filled() -> None:
    results = [
        _result(at=NOON),
        _result(at=NOON - 3600),
        _result(at=NOON - 2 * DAY),
        _result(score=10, at=NOON - DAY),
    ]
    stats = reporting.dashboard_stats(1, results, range_days=7, now=NOON)
    assert len(stats.daily_trend) == 7
    assert stats.daily_trend[0].date == "2025-06-09"
    assert stats.daily_trend[-1] == reporting.DailyCount(date="2025-06-15", passed=2)
    assert stats.daily_trend[-2].passed == 0
    assert stats.daily_trend[-3].passed == 1


def test_thirty_day_range() -> None:
    stats = reporting.dashboard_stats(0, [], range_days=30, now=NOON)
    assert len(stats.daily_trend) == 30
    assert all(d.passed == 0 for d in stats.daily_trend)


def test_unsupported_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        reporting.dashboard_stats(0, [], range_days=14, now=NOON)


def test_recent_activity_is_newest_ten_of_any_outcome() -> None:
    results = [_result(f"L{i}", score=i * 10, at=NOON - i * 60) for i in range(12)]
    stats = reporting.dashboard_stats(1, results, range_days=7, now=NOON)
    assert len(stats.recent_activity) == 10
    assert stats.recent_activity[0].learner.first_name == "L0"
    assert stats.recent_activity[-1].learner.first_name == "L9"
