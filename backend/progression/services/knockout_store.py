"""
Knockout persistence.

Reads a tournament snapshot, runs the pure engine, and writes the result
back in one transaction. Nothing is written when the engine raises, and a
concurrent writer that created the bracket first turns this write into a
DuplicateGenerationError instead of a second bracket.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from progression.config import get_settings
from progression.models.category import Category
from progression.models.match import Match
from progression.models.participant import Participant
from progression.models.tournament import Tournament
from progression.services.advancement_service import (
    AdvancementResult,
    resolve_all_placeholders,
    resolve_placeholder,
)
from progression.services.bracket_generator import (
    CrossingRule,
    KnockoutConfig,
    KnockoutPlan,
    generate_knockout_stage,
)
from progression.services.errors import DuplicateGenerationError, InsufficientQualifiersError
from progression.services.records import (
    KNOCKOUT_ROUNDS,
    MatchRecord,
    MatchStatus,
    RoundTag,
    StandingRow,
)
from progression.services.standings_calculator import (
    PointsScheme,
    compute_category_standings,
    rank_across_groups,
)
from progression.utils.locks import tournament_locks
from progression.utils.record_mapping import (
    apply_slots,
    category_to_record,
    groups_from_participants,
    match_to_record,
    record_to_match,
)

logger = logging.getLogger(__name__)


@dataclass
class TournamentSnapshot:
    rows: List[Match]
    records: List[MatchRecord]


def load_snapshot(session: Session, tournament_id: int) -> TournamentSnapshot:
    rows = session.exec(
        select(Match).where(Match.tournament_id == tournament_id).order_by(Match.match_number)
    ).all()
    return TournamentSnapshot(rows=list(rows), records=[match_to_record(m) for m in rows])


def category_participants(session: Session, category_id: int) -> List[Participant]:
    return list(
        session.exec(
            select(Participant).where(Participant.category_id == category_id).order_by(Participant.id)
        ).all()
    )


def category_standings(
    session: Session, category: Category, records: Optional[Sequence[MatchRecord]] = None
) -> Dict[str, List[StandingRow]]:
    """Group standings of one category, from its completed group-stage matches."""
    if records is None:
        records = load_snapshot(session, category.tournament_id).records
    group_matches = [r for r in records if r.category_id == category.id and r.round is RoundTag.GROUP_STAGE]
    groups = groups_from_participants(category_participants(session, category.id))
    scheme = PointsScheme.from_settings(get_settings())
    return compute_category_standings(groups, group_matches, scheme)


def _crossing_rule(
    session: Session, category: Category, crossing_category_ids: Sequence[int], records: Sequence[MatchRecord]
) -> CrossingRule:
    """One half per listed category: its ranked rows, group tier first."""
    halves: List[Tuple[int, ...]] = []
    names: List[str] = []
    for category_id in crossing_category_ids:
        half_category = session.get(Category, category_id)
        if not half_category or half_category.tournament_id != category.tournament_id:
            raise ValueError(f"Crossing category {category_id} is not part of tournament {category.tournament_id}")
        open_matches = [
            r for r in records
            if r.category_id == category_id
            and r.round is RoundTag.GROUP_STAGE
            and r.status not in (MatchStatus.COMPLETED, MatchStatus.CANCELLED)
        ]
        if open_matches:
            raise InsufficientQualifiersError(
                f"Group stage of category '{half_category.name}' not finished: "
                f"{len(open_matches)} group matches still open"
            )
        standings = category_standings(session, half_category, records)
        rows = [r for name in sorted(standings) for r in standings[name] if r.matches_played > 0]
        by_rank: Dict[int, List[StandingRow]] = {}
        for row in rows:
            by_rank.setdefault(row.rank, []).append(row)
        ordered = [row.participant_id for rank in sorted(by_rank) for row in rank_across_groups(by_rank[rank])]
        halves.append(tuple(ordered))
        names.append(half_category.name)
    return CrossingRule(halves=tuple(halves), half_names=tuple(names))


def generate_knockout(
    session: Session,
    category: Category,
    crossing_category_ids: Optional[Sequence[int]] = None,
    schedule_override=None,
) -> KnockoutPlan:
    """Generate and store the knockout stage of *category*.

    Raises whatever the engine raises (nothing written), or
    DuplicateGenerationError when a concurrent writer got there first.
    """
    tournament = session.get(Tournament, category.tournament_id)
    settings = get_settings()

    with tournament_locks.hold(category.tournament_id):
        snapshot = load_snapshot(session, category.tournament_id)
        standings = category_standings(session, category, snapshot.records)
        participants = category_participants(session, category.id)
        seeded = sorted(participants, key=lambda p: (p.seed is None, p.seed or 0, p.id))

        config = KnockoutConfig.from_settings(
            settings,
            qualifiers_per_group=category.qualifiers_per_group,
            third_place_match=category.third_place_match,
            courts=tuple(tournament.court_names) if tournament and tournament.court_names else None,
            start_time=tournament.start_time if tournament else None,
            seeded_participant_ids=tuple(p.id for p in seeded),
            schedule_override=tuple(schedule_override) if schedule_override is not None else None,
        )
        crossing = None
        if crossing_category_ids:
            crossing = _crossing_rule(session, category, crossing_category_ids, snapshot.records)

        plan = generate_knockout_stage(
            category_to_record(category),
            standings,
            config,
            existing_matches=snapshot.records,
            crossing=crossing,
        )
        if plan.already_generated:
            return plan

        unassigned = [p.id for p in participants if not p.group_name]
        if category.number_of_groups > 0 and unassigned:
            raise InsufficientQualifiersError(
                f"Category '{category.name}' has participants without a group: {unassigned}",
                available=len(participants) - len(unassigned),
            )

        _write_plan(session, category, plan)
        return plan


def _write_plan(session: Session, category: Category, plan: KnockoutPlan) -> None:
    knockout_values = [tag.value for tag in KNOCKOUT_ROUNDS]
    try:
        # Re-check inside the write: another writer may have created the bracket
        existing = session.exec(
            select(Match).where(Match.category_id == category.id, Match.round.in_(knockout_values))
        ).first()
        if existing:
            raise DuplicateGenerationError(
                f"Knockout stage for category {category.id} was created concurrently",
                category_id=category.id,
            )
        for record in plan.matches:
            session.add(record_to_match(record))
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateGenerationError(
            f"Knockout stage for category {category.id} conflicts with existing match numbers",
            category_id=category.id,
        )
    except Exception:
        session.rollback()
        raise
    logger.info("Stored %d knockout matches for category %d", len(plan.matches), category.id)


def _store_advancement(session: Session, snapshot: TournamentSnapshot, result: AdvancementResult) -> None:
    if not result.updated_match_numbers:
        return
    by_number = {r.match_number: r for r in result.matches}
    try:
        for row in snapshot.rows:
            if row.match_number in result.updated_match_numbers:
                apply_slots(row, by_number[row.match_number])
                session.add(row)
        session.commit()
    except Exception:
        session.rollback()
        raise


def resolve_after_completion(session: Session, tournament_id: int, match_number: int) -> AdvancementResult:
    with tournament_locks.hold(tournament_id):
        snapshot = load_snapshot(session, tournament_id)
        result = resolve_placeholder(snapshot.records, match_number)
        _store_advancement(session, snapshot, result)
        return result


def resolve_all(session: Session, tournament_id: int) -> AdvancementResult:
    with tournament_locks.hold(tournament_id):
        snapshot = load_snapshot(session, tournament_id)
        result = resolve_all_placeholders(snapshot.records)
        _store_advancement(session, snapshot, result)
        return result
