from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from progression.database import get_session
from progression.services.errors import ProgressionError
from progression.services.knockout_store import category_standings, load_snapshot
from progression.services.placements import category_is_complete, derive_final_placements
from progression.utils.guards import get_category_or_404, http_error
from progression.utils.record_mapping import category_to_record

router = APIRouter()


class StandingRowResponse(BaseModel):
    rank: int
    participant_id: int
    group_name: str
    matches_played: int
    matches_won: int
    matches_lost: int
    sets_won: int
    sets_lost: int
    games_won: int
    games_lost: int
    points: int


class CategoryStandingsResponse(BaseModel):
    category_id: int
    groups: Dict[str, List[StandingRowResponse]]


class PlacementResponse(BaseModel):
    participant_id: int
    position: int


class CategoryPlacementsResponse(BaseModel):
    category_id: int
    complete: bool
    placements: List[PlacementResponse]


@router.get("/categories/{category_id}/standings", response_model=CategoryStandingsResponse)
def get_category_standings(category_id: int, session: Session = Depends(get_session)):
    """Group standings recomputed from completed group-stage matches."""
    category = get_category_or_404(session, category_id)
    try:
        standings = category_standings(session, category)
    except (ProgressionError, ValueError) as e:
        raise http_error(e)
    return CategoryStandingsResponse(
        category_id=category.id,
        groups={
            name: [StandingRowResponse(**{k: getattr(r, k) for k in StandingRowResponse.model_fields}) for r in rows]
            for name, rows in standings.items()
        },
    )


@router.get("/categories/{category_id}/placements", response_model=CategoryPlacementsResponse)
def get_category_placements(category_id: int, session: Session = Depends(get_session)):
    """Final positions; empty while the category is still being played."""
    category = get_category_or_404(session, category_id)
    try:
        records = load_snapshot(session, category.tournament_id).records
        record = category_to_record(category)
        complete = category_is_complete(record, records)
        placements = []
        if complete:
            standings = category_standings(session, category, records)
            placements = derive_final_placements(record, records, standings)
    except (ProgressionError, ValueError) as e:
        raise http_error(e)
    return CategoryPlacementsResponse(
        category_id=category.id,
        complete=complete,
        placements=[PlacementResponse(participant_id=p.participant_id, position=p.position) for p in placements],
    )
