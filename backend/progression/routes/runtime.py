"""
Runtime: match status + scores.
When a match completes, downstream placeholder slots that wait on it are
resolved and those matches move from pending_qualification to scheduled.
"""
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from progression.database import get_session
from progression.models.match import Match
from progression.routes.schemas import MatchResponse, match_response
from progression.services.errors import ProgressionError
from progression.services.knockout_store import resolve_after_completion, resolve_all
from progression.services.league_store import recompute_for_tournament
from progression.services.records import MatchStatus, is_resolved
from progression.services.score_parser import match_winner_side, parse_sets, sets_to_json
from progression.utils.guards import get_tournament_or_404, http_error
from progression.utils.locks import tournament_locks
from progression.utils.record_mapping import slot_from_json

router = APIRouter()

# Allowed status transitions
_TRANSITIONS = {
    MatchStatus.PENDING_QUALIFICATION: {MatchStatus.CANCELLED},
    MatchStatus.SCHEDULED: {MatchStatus.IN_PROGRESS, MatchStatus.COMPLETED, MatchStatus.CANCELLED},
    MatchStatus.IN_PROGRESS: {MatchStatus.COMPLETED, MatchStatus.CANCELLED},
    MatchStatus.COMPLETED: set(),
    MatchStatus.CANCELLED: set(),
}


class MatchUpdate(BaseModel):
    status: Optional[str] = None
    # Any accepted score shape: "6-3 4-6 10-7", [[6, 3], [4, 6]], [{"a": 6, "b": 3}]
    sets: Optional[Any] = None


class MatchUpdateResponse(BaseModel):
    match: MatchResponse
    updated_match_numbers: List[int] = []
    recomputed_league_ids: List[int] = []


class ResolveResponse(BaseModel):
    updated_match_numbers: List[int]


def _validate_status_transition(current: str, new: str) -> MatchStatus:
    try:
        target = MatchStatus(new)
        source = MatchStatus(current)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid status: {new}")
    if source is target:
        return target
    if target not in _TRANSITIONS[source]:
        raise HTTPException(status_code=422, detail=f"Cannot move match from {source.value} to {target.value}")
    return target


@router.patch("/tournaments/{tournament_id}/matches/{match_id}", response_model=MatchUpdateResponse)
def update_match(
    tournament_id: int,
    match_id: int,
    payload: MatchUpdate,
    session: Session = Depends(get_session),
) -> MatchUpdateResponse:
    """Update match status/scores. Match must belong to tournament.
    Completing a match requires resolved sides and sets naming a winner."""
    get_tournament_or_404(session, tournament_id)

    with tournament_locks.hold(tournament_id):
        match = session.get(Match, match_id)
        if not match or match.tournament_id != tournament_id:
            raise HTTPException(status_code=404, detail="Match not found")
        if match.status == MatchStatus.COMPLETED.value:
            raise HTTPException(status_code=422, detail="completed is terminal; scores can no longer change")

        if payload.sets is not None:
            try:
                match.sets = sets_to_json(parse_sets(payload.sets))
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e))

        target = None
        if payload.status is not None:
            target = _validate_status_transition(match.status, payload.status)
            if target is MatchStatus.COMPLETED:
                sides = [slot_from_json(match.side_a), slot_from_json(match.side_b)]
                if not all(is_resolved(s) for s in sides):
                    raise HTTPException(
                        status_code=422, detail="Cannot complete a match with an unresolved participant slot"
                    )
                try:
                    match_winner_side(parse_sets(match.sets), match.match_number)
                except ProgressionError as e:
                    raise http_error(e)
                match.completed_at = datetime.utcnow()
            elif target is MatchStatus.IN_PROGRESS and match.started_at is None:
                match.started_at = datetime.utcnow()
            match.status = target.value

        session.add(match)
        session.commit()
        session.refresh(match)

        updated: List[int] = []
        leagues: List[int] = []
        if target is MatchStatus.COMPLETED:
            try:
                result = resolve_after_completion(session, tournament_id, match.match_number)
                # The last completion of a tournament rebuilds its leagues
                leagues = recompute_for_tournament(session, tournament_id)
            except (ProgressionError, ValueError) as e:
                raise http_error(e)
            updated = list(result.updated_match_numbers)

    return MatchUpdateResponse(
        match=match_response(match), updated_match_numbers=updated, recomputed_league_ids=leagues
    )


@router.post("/tournaments/{tournament_id}/resolve-placeholders", response_model=ResolveResponse)
def resolve_placeholders(tournament_id: int, session: Session = Depends(get_session)) -> ResolveResponse:
    """Replay every completed match into its downstream slots (repair). Idempotent."""
    get_tournament_or_404(session, tournament_id)
    try:
        result = resolve_all(session, tournament_id)
    except (ProgressionError, ValueError) as e:
        raise http_error(e)
    return ResolveResponse(updated_match_numbers=list(result.updated_match_numbers))
