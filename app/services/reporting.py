"""Admin reporting over completion records.

Everything here is computed from the full result list on each call.
Dates are bucketed by UTC calendar day.
"""

from __future__ import annotations

import csv
import datetime
import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from app.models.result import TestResult
from app.repos.access_code_repo import AccessCodeRepo
from app.repos.result_repo import ResultRepo

T = TypeVar("T")

CSV_HEADER = ("Completion ID", "Training", "Learner", "Company", "Status", "Date")
DASHBOARD_RANGES = (7, 30)
MAX_PAGE_SIZE = 100
RECENT_ACTIVITY_LIMIT = 10
_DAY = 24 * 3600


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return max((self.total + self.page_size - 1) // self.page_size, 1)


@dataclass(frozen=True, slots=True)
class DailyCount:
    date: str  # YYYY-MM-DD
    passed: int


@dataclass(frozen=True, slots=True)
class DashboardStats:
    total_companies: int
    total_completions: int
    recent_completions: int
    daily_trend: list[DailyCount]
    recent_activity: list[TestResult]


def utc_date(ts: int) -> datetime.date:
    return datetime.datetime.fromtimestamp(ts, datetime.UTC).date()


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    if page < 1:
        raise ValueError("page must be >= 1")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
    start = (page - 1) * page_size
    return Page(
        items=list(items[start : start + page_size]),
        total=len(items),
        page=page,
        page_size=page_size,
    )


def newest_first(results: Iterable[TestResult]) -> list[TestResult]:
    return sorted(results, key=lambda r: r.completed_at, reverse=True)


def filter_results(results: Iterable[TestResult], search: str = "") -> list[TestResult]:
    """Match on learner first/last name, company, or course name."""
    needle = search.strip().casefold()
    if not needle:
        return newest_first(results)
    return newest_first(
        r
        for r in results
        if needle in r.learner.first_name.casefold()
        or needle in r.learner.last_name.casefold()
        or needle in r.learner.company_name.casefold()
        or needle in r.course_name.casefold()
    )


def results_csv(results: Iterable[TestResult]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in results:
        writer.writerow(
            (
                r.completion_id,
                r.course_name,
                r.learner.full_name,
                r.learner.company_name,
                "Pass" if r.passed else "Fail",
                utc_date(r.completed_at).isoformat(),
            )
        )
    return buf.getvalue()


def dashboard_stats(
    company_count: int,
    results: Sequence[TestResult],
    *,
    range_days: int,
    now: int,
) -> DashboardStats:
    if range_days not in DASHBOARD_RANGES:
        raise ValueError(f"range_days must be one of {DASHBOARD_RANGES}")

    passed = [r for r in results if r.passed]
    today = utc_date(now)
    per_day: dict[datetime.date, int] = {}
    for r in passed:
        day = utc_date(r.completed_at)
        per_day[day] = per_day.get(day, 0) + 1

    trend = []
    for offset in range(range_days - 1, -1, -1):
        day = today - datetime.timedelta(days=offset)
        trend.append(DailyCount(date=day.isoformat(), passed=per_day.get(day, 0)))

    return DashboardStats(
        total_companies=company_count,
        total_completions=len(passed),
        recent_completions=sum(1 for r in passed if r.completed_at >= now - 30 * _DAY),
        daily_trend=trend,
        recent_activity=newest_first(results)[:RECENT_ACTIVITY_LIMIT],
    )


async def load_dashboard(
    codes: AccessCodeRepo,
    results: ResultRepo,
    *,
    range_days: int = 7,
    now: int | None = None,
) -> DashboardStats:
    now = int(datetime.datetime.now(datetime.UTC).timestamp()) if now is None else now
    return dashboard_stats(
        len(await codes.list_all()),
        await results.list_all(),
        range_days=range_days,
        now=now,
    )
