from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from app.api.dependencies import require_role
from app.api.schemas import ResultOut, ResultPageOut
from app.repos.access_code_repo import access_code_repo
from app.repos.result_repo import result_repo
from app.services import reporting

router = APIRouter(
    prefix="/v1/admin",
    tags=["admin"],
    dependencies=[Depends(require_role("admin"))],
)


class DailyCountOut(BaseModel):
    date: str
    passed: int


class DashboardOut(BaseModel):
    total_companies: int
    total_completions: int
    recent_completions: int
    daily_trend: list[DailyCountOut]
    recent_activity: list[ResultOut]


@router.get("/results", response_model=ResultPageOut)
async def list_results(
    search: str = "",
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=reporting.MAX_PAGE_SIZE)] = 10,
) -> ResultPageOut:
    results = reporting.filter_results(await result_repo.list_all(), search)
    return ResultPageOut.from_page(reporting.paginate(results, page, page_size))


@router.get("/results.csv")
async def export_results(search: str = "") -> Response:
    results = reporting.filter_results(await result_repo.list_all(), search)
    return Response(
        content=reporting.results_csv(results),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="Global_Results.csv"'},
    )


@router.get("/dashboard", response_model=DashboardOut)
async def dashboard(range_days: int = 7) -> DashboardOut:
    try:
        stats = await reporting.load_dashboard(
            access_code_repo, result_repo, range_days=range_days
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        ) from None
    return DashboardOut(
        total_companies=stats.total_companies,
        total_completions=stats.total_completions,
        recent_completions=stats.recent_completions,
        daily_trend=[DailyCountOut(date=d.date, passed=d.passed) for d in stats.daily_trend],
        recent_activity=[ResultOut.model_validate(r) for r in stats.recent_activity],
    )
