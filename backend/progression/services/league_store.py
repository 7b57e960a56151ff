"""
League persistence: gather tournament results, rebuild the table, store it.
"""
import logging
from datetime import datetime
from typing import List

from sqlmodel import Session, select

from progression.models.category import Category
from progression.models.entity import EntityLink as EntityLinkRow
from progression.models.league import League, LeagueStanding, LeagueTournament
from progression.services.knockout_store import category_standings, load_snapshot
from progression.services.league_aggregator import (
    LeagueRecomputeResult,
    TournamentResults,
    recompute_league_standings,
)
from progression.services.placements import category_is_complete, derive_final_placements
from progression.services.records import TournamentPlacement
from progression.utils.locks import league_locks
from progression.utils.record_mapping import category_to_record, league_to_record, link_to_record

logger = logging.getLogger(__name__)


def tournament_results(session: Session, attachment: LeagueTournament) -> TournamentResults:
    """Placements of one attached tournament; complete once every category is."""
    categories = session.exec(
        select(Category).where(Category.tournament_id == attachment.tournament_id).order_by(Category.id)
    ).all()
    records = load_snapshot(session, attachment.tournament_id).records

    completed = bool(categories)
    placements: List[TournamentPlacement] = []
    for category in categories:
        record = category_to_record(category)
        if not category_is_complete(record, records):
            completed = False
            continue
        standings = category_standings(session, category, records)
        placements.extend(derive_final_placements(record, records, standings))

    return TournamentResults(
        tournament_id=attachment.tournament_id,
        completed=completed,
        placements=tuple(placements) if completed else (),
        league_category=attachment.league_category,
    )


def recompute(session: Session, league: League, strict: bool = False) -> LeagueRecomputeResult:
    """Full rebuild of the stored league table in one transaction."""
    with league_locks.hold(league.id):
        attachments = session.exec(
            select(LeagueTournament)
            .where(LeagueTournament.league_id == league.id)
            .order_by(LeagueTournament.tournament_id)
        ).all()
        results = [tournament_results(session, a) for a in attachments]

        participant_ids = {p.participant_id for r in results for p in r.placements}
        links = []
        if participant_ids:
            links = [
                link_to_record(link)
                for link in session.exec(
                    select(EntityLinkRow).where(EntityLinkRow.participant_id.in_(participant_ids))
                ).all()
            ]

        result = recompute_league_standings(league_to_record(league), results, links, strict=strict)
        _store_rows(session, league, result)
        return result


def _store_rows(session: Session, league: League, result: LeagueRecomputeResult) -> None:
    existing = {
        row.entity_id: row
        for row in session.exec(select(LeagueStanding).where(LeagueStanding.league_id == league.id)).all()
    }
    now = datetime.utcnow()
    try:
        fresh = {row.entity_id for row in result.rows}
        # Entities that no longer earn points keep their row, zeroed and ranked last
        stale_ids = sorted(entity_id for entity_id in existing if entity_id not in fresh)
        for offset, entity_id in enumerate(stale_ids):
            stale = existing[entity_id]
            stale.total_points = 0
            stale.tournaments_played = 0
            stale.best_position = None
            stale.rank = len(result.rows) + offset + 1
            stale.updated_at = now
            session.add(stale)
        for row in result.rows:
            stored = existing.get(row.entity_id) or LeagueStanding(
                league_id=league.id, entity_id=row.entity_id, rank=row.rank
            )
            stored.total_points = row.total_points
            stored.tournaments_played = row.tournaments_played
            stored.best_position = row.best_position
            stored.rank = row.rank
            stored.updated_at = now
            session.add(stored)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("Stored %d league standing rows for league %d", len(result.rows), league.id)


def stored_standings(session: Session, league_id: int) -> List[LeagueStanding]:
    return list(
        session.exec(
            select(LeagueStanding)
            .where(LeagueStanding.league_id == league_id)
            .order_by(LeagueStanding.rank, LeagueStanding.entity_id)
        ).all()
    )


def recompute_for_tournament(session: Session, tournament_id: int) -> List[int]:
    """Rebuild every league the tournament belongs to once all its categories are complete.

    Returns the ids of the leagues that were recomputed.
    """
    attachments = session.exec(
        select(LeagueTournament)
        .where(LeagueTournament.tournament_id == tournament_id)
        .order_by(LeagueTournament.league_id)
    ).all()
    if not attachments or not tournament_results(session, attachments[0]).completed:
        return []

    recomputed = []
    for attachment in attachments:
        league = session.get(League, attachment.league_id)
        recompute(session, league)
        recomputed.append(league.id)
    logger.info("Tournament %d complete: recomputed leagues %s", tournament_id, recomputed)
    return recomputed


def delete_standing(session: Session, league_id: int, entity_id: int) -> bool:
    """Administrative removal of one stored standing row."""
    with league_locks.hold(league_id):
        row = session.exec(
            select(LeagueStanding).where(LeagueStanding.league_id == league_id, LeagueStanding.entity_id == entity_id)
        ).first()
        if not row:
            return False
        session.delete(row)
        session.commit()
    logger.info("Deleted league %d standing of entity %d", league_id, entity_id)
    return True
