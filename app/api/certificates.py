"""Public certificate verification.

Anyone holding a completion id (printed on the learner's certificate)
can confirm it is genuine.  ``valid`` is true only for a passing
result; a failed attempt still has a completion id but certifies
nothing.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from app.repos.result_repo import result_repo
from app.services.reporting import utc_date

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class CertificateOut(BaseModel):
    completion_id: str
    valid: bool
    learner_name: str
    company_name: str
    course_name: str
    score: int
    completed_at: int
    completed_on: str


@router.get("/{completion_id}/verify", response_model=CertificateOut)
async def verify_certificate(completion_id: str) -> CertificateOut:
    result = await result_repo.get_by_completion_id(completion_id.strip().upper())
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Certificate not found",
        )
    return CertificateOut(
        completion_id=result.completion_id,
        valid=result.passed,
        learner_name=result.learner.full_name,
        company_name=result.learner.company_name,
        course_name=result.course_name,
        score=result.score,
        completed_at=result.completed_at,
        completed_on=utc_date(result.completed_at).isoformat(),
    )
