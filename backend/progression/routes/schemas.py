from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from progression.models.match import Match
from progression.services.records import MatchRecord, slot_label
from progression.utils.record_mapping import slot_from_json, slot_to_json


class MatchResponse(BaseModel):
    id: Optional[int] = None
    tournament_id: int
    category_id: Optional[int]
    round: str
    match_number: int
    label: Optional[str] = None
    group_name: Optional[str] = None
    side_a: Dict[str, Any]
    side_b: Dict[str, Any]
    side_a_label: str
    side_b_label: str
    status: str
    sets: Optional[List[Dict[str, int]]] = None
    court: Optional[str] = None
    scheduled_time: Optional[datetime] = None


def match_response(m: Match) -> MatchResponse:
    return MatchResponse(
        id=m.id,
        tournament_id=m.tournament_id,
        category_id=m.category_id,
        round=m.round,
        match_number=m.match_number,
        label=m.label,
        group_name=m.group_name,
        side_a=m.side_a,
        side_b=m.side_b,
        side_a_label=slot_label(slot_from_json(m.side_a)),
        side_b_label=slot_label(slot_from_json(m.side_b)),
        status=m.status,
        sets=m.sets,
        court=m.court,
        scheduled_time=m.scheduled_time,
    )


def record_response(r: MatchRecord) -> MatchResponse:
    return MatchResponse(
        id=r.match_id,
        tournament_id=r.tournament_id,
        category_id=r.category_id,
        round=r.round.value,
        match_number=r.match_number,
        label=r.label,
        group_name=r.group_name,
        side_a=slot_to_json(r.side_a),
        side_b=slot_to_json(r.side_b),
        side_a_label=slot_label(r.side_a),
        side_b_label=slot_label(r.side_b),
        status=r.status.value,
        sets=[{"a": s.a, "b": s.b} for s in r.sets] or None,
        court=r.court,
        scheduled_time=r.scheduled_time,
    )
