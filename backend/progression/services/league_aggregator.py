"""
League standings.

Full rebuild of a league table from every completed tournament attached to
the league. Recompute is a pure function of its inputs: running it twice
on the same results gives identical rows, so it doubles as the repair path
when stored standings drift.

Points come from the league's position -> points scale (optionally
overridden per league category). A participant only earns points for the
entities it is explicitly linked to; participants without a link are
reported as unresolved.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from progression.services.errors import UnresolvedEntityError
from progression.services.records import (
    EngineEvent,
    EntityLink,
    LeagueRecord,
    LeagueStandingRow,
    TournamentPlacement,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TournamentResults:
    tournament_id: int
    completed: bool
    placements: Tuple[TournamentPlacement, ...] = ()
    league_category: Optional[str] = None


@dataclass(frozen=True)
class UnresolvedPlacement:
    tournament_id: int
    participant_id: int
    position: int


@dataclass(frozen=True)
class LeagueRecomputeResult:
    rows: Tuple[LeagueStandingRow, ...]
    unresolved: Tuple[UnresolvedPlacement, ...] = ()
    skipped_tournament_ids: Tuple[int, ...] = ()
    events: Tuple[EngineEvent, ...] = field(default_factory=tuple)


def points_for(scale, position: int) -> int:
    """Points for a final position; unlisted positions score 0."""
    return int(scale.get(position, scale.get(str(position), 0)))


def recompute_league_standings(
    league: LeagueRecord,
    results: Iterable[TournamentResults],
    links: Iterable[EntityLink],
    strict: bool = False,
) -> LeagueRecomputeResult:
    """Rebuild the league table from scratch.

    Args:
        league: League with its scoring scale(s).
        results: One entry per tournament attached to the league, any order.
            Incomplete tournaments are skipped.
        links: Participant -> entity links (a fixed pair may link to two entities).
        strict: Raise UnresolvedEntityError instead of reporting unlinked placements.

    Ordering: total points desc, tournaments played asc, entity id asc.
    """
    entities_by_participant: Dict[int, List[int]] = defaultdict(list)
    for link in sorted(set(links), key=lambda l: (l.participant_id, l.entity_id)):
        entities_by_participant[link.participant_id].append(link.entity_id)

    totals: Dict[int, int] = defaultdict(int)
    played: Dict[int, int] = defaultdict(int)
    best: Dict[int, int] = {}
    unresolved: List[UnresolvedPlacement] = []
    skipped: List[int] = []

    for result in sorted(results, key=lambda r: r.tournament_id):
        if not result.completed:
            skipped.append(result.tournament_id)
            continue

        scale = league.scale_for(result.league_category)
        # entity -> best position reached in this tournament
        reached: Dict[int, int] = {}
        for placement in sorted(result.placements, key=lambda p: (p.position, p.participant_id)):
            entity_ids = entities_by_participant.get(placement.participant_id)
            if not entity_ids:
                unresolved.append(
                    UnresolvedPlacement(result.tournament_id, placement.participant_id, placement.position)
                )
                continue
            for entity_id in entity_ids:
                if entity_id not in reached or placement.position < reached[entity_id]:
                    reached[entity_id] = placement.position

        for entity_id, position in reached.items():
            totals[entity_id] += points_for(scale, position)
            played[entity_id] += 1
            if entity_id not in best or position < best[entity_id]:
                best[entity_id] = position

    if unresolved:
        ids = sorted({u.participant_id for u in unresolved})
        logger.warning("League %d: %d placements without an entity link (participants %s)", league.id, len(unresolved), ids)
        if strict:
            raise UnresolvedEntityError(
                f"League {league.id}: {len(unresolved)} placements cannot be attributed to an entity "
                f"(participants {ids})",
                participant_ids=ids,
            )

    ordered = sorted(played, key=lambda e: (-totals[e], played[e], e))
    rows = tuple(
        LeagueStandingRow(
            league_id=league.id,
            entity_id=entity_id,
            total_points=totals[entity_id],
            tournaments_played=played[entity_id],
            best_position=best.get(entity_id),
            rank=index + 1,
        )
        for index, entity_id in enumerate(ordered)
    )

    logger.info(
        "League %d recomputed: %d entities, %d tournaments skipped, %d unresolved",
        league.id,
        len(rows),
        len(skipped),
        len(unresolved),
    )
    event = EngineEvent(
        kind="league_recomputed",
        scope="league",
        scope_id=league.id,
        detail={
            "entities": len(rows),
            "skipped_tournament_ids": skipped,
            "unresolved_participant_ids": sorted({u.participant_id for u in unresolved}),
        },
    )
    return LeagueRecomputeResult(
        rows=rows,
        unresolved=tuple(unresolved),
        skipped_tournament_ids=tuple(skipped),
        events=(event,),
    )

