"""
Final placements of a finished category.

Feeds league aggregation: a placement names a participant and the final
position it reached. Singles and team brackets share positions between
participants knocked out in the same round; crossed and mixed doubles
brackets give every player an individual position, partners one after
the other in group-record order.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from progression.services.advancement_service import winner_and_loser
from progression.services.records import (
    FINAL_ROUNDS,
    SEMIFINAL_ROUNDS,
    THIRD_PLACE_ROUNDS,
    CategoryFormat,
    CategoryRecord,
    MatchRecord,
    MatchStatus,
    RoundTag,
    StandingRow,
    TournamentPlacement,
    parse_category_format,
)
from progression.services.standings_calculator import rank_across_groups

logger = logging.getLogger(__name__)

_DONE = (MatchStatus.COMPLETED, MatchStatus.CANCELLED)

# Losers of an early round share the first position below that round
_EARLY_ROUND_POSITION = {
    RoundTag.QUARTERFINAL: 5,
    RoundTag.ROUND_OF_16: 9,
    RoundTag.ROUND_OF_32: 17,
}

# Doubles brackets place pairs in this order, winners before losers
_PLACING_ROUNDS = (FINAL_ROUNDS, THIRD_PLACE_ROUNDS, frozenset({RoundTag.CROSSED_5TH_PLACE}))


def category_is_complete(category: CategoryRecord, matches: Sequence[MatchRecord]) -> bool:
    if category.is_final:
        return True
    own = [m for m in matches if m.category_id == category.id]
    fmt = parse_category_format(category.format)
    if fmt is CategoryFormat.GROUP_ONLY or not category.knockout_stage:
        relevant = [m for m in own if m.round is RoundTag.GROUP_STAGE]
    else:
        relevant = [m for m in own if m.is_knockout]
    return bool(relevant) and all(m.status in _DONE for m in relevant)


def derive_final_placements(
    category: CategoryRecord,
    matches: Sequence[MatchRecord],
    group_standings: Optional[Mapping[str, Sequence[StandingRow]]] = None,
) -> List[TournamentPlacement]:
    """Final positions for every placed participant, best first.

    Empty while the category is still being played.
    """
    own = sorted((m for m in matches if m.category_id == category.id), key=lambda m: m.match_number)
    if not category_is_complete(category, own):
        return []

    fmt = parse_category_format(category.format)
    if fmt is CategoryFormat.GROUP_ONLY or not category.knockout_stage:
        positions = _group_positions(group_standings or {})
    elif fmt in (CategoryFormat.CROSSED_PLAYOFFS, CategoryFormat.MIXED_GENDER):
        positions = _individual_positions(own, group_standings or {})
    else:
        positions = _knockout_positions(own, group_standings or {})

    placements = [
        TournamentPlacement(
            tournament_id=category.tournament_id,
            category_id=category.id,
            participant_id=pid,
            position=position,
        )
        for pid, position in sorted(positions.items(), key=lambda item: (item[1], item[0]))
    ]
    logger.debug("Category %s placements: %s", category.id, [(p.participant_id, p.position) for p in placements])
    return placements


def _group_positions(group_standings: Mapping[str, Sequence[StandingRow]]) -> Dict[int, int]:
    """Group winners first (best record across groups), then runners-up, ..."""
    rows = [r for name in sorted(group_standings) for r in group_standings[name]]
    by_rank: Dict[int, List[StandingRow]] = {}
    for row in rows:
        by_rank.setdefault(row.rank, []).append(row)

    positions: Dict[int, int] = {}
    for rank in sorted(by_rank):
        for row in rank_across_groups(by_rank[rank]):
            positions.setdefault(row.participant_id, len(positions) + 1)
    return positions


def _knockout_positions(
    matches: Sequence[MatchRecord], group_standings: Mapping[str, Sequence[StandingRow]]
) -> Dict[int, int]:
    positions: Dict[int, int] = {}

    def place(side, position: int) -> None:
        for pid in side.participant_ids:
            if pid not in positions or position < positions[pid]:
                positions[pid] = position

    completed = [m for m in matches if m.status is MatchStatus.COMPLETED and m.is_knockout]
    has_third_place = any(m.round in THIRD_PLACE_ROUNDS for m in completed)

    for match in completed:
        winner, loser = winner_and_loser(match)
        if match.round in FINAL_ROUNDS:
            place(winner, 1)
            place(loser, 2)
        elif match.round in THIRD_PLACE_ROUNDS:
            place(winner, 3)
            place(loser, 4)
        elif match.round in SEMIFINAL_ROUNDS and not has_third_place:
            place(loser, 3)
        elif match.round in _EARLY_ROUND_POSITION:
            place(loser, _EARLY_ROUND_POSITION[match.round])

    # Participants knocked out without a placing match rank below everyone
    # placed, ordered by their group-stage record
    leftovers = {
        pid
        for m in completed
        for pid in m.participant_ids()
        if pid not in positions
    }
    if leftovers:
        rows_by_id = {r.participant_id: r for name in group_standings for r in group_standings[name]}
        known = rank_across_groups(rows_by_id[pid] for pid in leftovers if pid in rows_by_id)
        ordered = [r.participant_id for r in known] + sorted(pid for pid in leftovers if pid not in rows_by_id)
        next_position = max(positions.values(), default=0) + 1
        for offset, pid in enumerate(ordered):
            positions[pid] = next_position + offset

    return positions


def _group_record_key(rows_by_id: Mapping[int, StandingRow], pid: int):
    """Wins, then game difference, then games won; players without a group row last."""
    row = rows_by_id.get(pid)
    if row is None:
        return (1, 0, 0, 0, pid)
    return (0, -row.matches_won, -row.game_diff, -row.games_won, pid)


def _individual_positions(
    matches: Sequence[MatchRecord], group_standings: Mapping[str, Sequence[StandingRow]]
) -> Dict[int, int]:
    """Final, 3rd place and 5th place pairs in that order, winners first;
    then semifinal and first-round losers not placed yet, by match number."""
    completed = [m for m in matches if m.status is MatchStatus.COMPLETED and m.is_knockout]
    rows_by_id = {r.participant_id: r for name in group_standings for r in group_standings[name]}

    sides = []
    for rounds in _PLACING_ROUNDS:
        for match in completed:
            if match.round in rounds:
                sides.extend(winner_and_loser(match))
    others = [m for m in completed if not any(m.round in rounds for rounds in _PLACING_ROUNDS)]
    for match in sorted(others, key=lambda m: (m.round not in SEMIFINAL_ROUNDS, m.match_number)):
        sides.append(winner_and_loser(match)[1])

    positions: Dict[int, int] = {}
    for side in sides:
        fresh = [pid for pid in side.participant_ids if pid not in positions]
        for pid in sorted(fresh, key=lambda pid: _group_record_key(rows_by_id, pid)):
            positions[pid] = len(positions) + 1
    return positions
