"""
Knockout generation endpoint.

Generation is idempotent: calling it again for a category that already
has knockout matches reports already_generated and creates nothing.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from progression.database import get_session
from progression.routes.schemas import MatchResponse, record_response
from progression.services.errors import ProgressionError
from progression.services.knockout_store import generate_knockout
from progression.utils.guards import get_category_or_404, http_error

router = APIRouter()


class KnockoutRequest(BaseModel):
    # Crossed / mixed formats spanning several categories: one half per category, in order
    crossing_category_ids: Optional[List[int]] = None
    schedule_override: Optional[List[datetime]] = None


class KnockoutResponse(BaseModel):
    category_id: int
    already_generated: bool
    matches: List[MatchResponse]
    seeds: List[int]
    conflicts: List[str]


@router.post("/categories/{category_id}/knockout", response_model=KnockoutResponse)
def create_knockout_stage(
    category_id: int,
    payload: Optional[KnockoutRequest] = None,
    session: Session = Depends(get_session),
) -> KnockoutResponse:
    category = get_category_or_404(session, category_id)
    payload = payload or KnockoutRequest()
    try:
        plan = generate_knockout(
            session,
            category,
            crossing_category_ids=payload.crossing_category_ids,
            schedule_override=payload.schedule_override,
        )
    except (ProgressionError, ValueError) as e:
        raise http_error(e)

    return KnockoutResponse(
        category_id=category.id,
        already_generated=plan.already_generated,
        matches=[record_response(m) for m in plan.matches],
        seeds=list(plan.seeds),
        conflicts=list(plan.conflicts),
    )
