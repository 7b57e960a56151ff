from typing import Any, List, Tuple

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from progression.database import get_session
from progression.models.category import Category
from progression.models.match import Match
from progression.models.participant import Participant
from progression.services.integrity_audit import ParticipantAssignment, audit_tournament
from progression.services.records import MatchRecord, parse_round_tag
from progression.utils.guards import get_tournament_or_404
from progression.utils.record_mapping import category_to_record, match_to_record

router = APIRouter()


@router.get("/tournaments/{tournament_id}/integrity")
def get_tournament_integrity(tournament_id: int, session: Session = Depends(get_session)):
    """Read-only data integrity report (unassigned participants, orphan knockout
    matches, duplicate rounds, completed matches without a winner ...)."""
    get_tournament_or_404(session, tournament_id)

    categories = session.exec(select(Category).where(Category.tournament_id == tournament_id)).all()
    participants = session.exec(select(Participant).where(Participant.tournament_id == tournament_id)).all()
    rows = session.exec(
        select(Match).where(Match.tournament_id == tournament_id).order_by(Match.match_number)
    ).all()

    records: List[MatchRecord] = []
    raw_rounds: List[Tuple[int, Any]] = []
    for row in rows:
        try:
            parse_round_tag(row.round)
        except ValueError:
            raw_rounds.append((row.match_number, row.round))
            continue
        records.append(match_to_record(row))

    report = audit_tournament(
        categories=[category_to_record(c) for c in categories],
        participants=[
            ParticipantAssignment(participant_id=p.id, category_id=p.category_id, group_name=p.group_name)
            for p in participants
        ],
        matches=records,
        raw_rounds=raw_rounds,
    )
    return report.to_dict()
