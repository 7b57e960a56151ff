"""
Group standings.

Deterministic ranking of a group's participants from its completed matches.

Order: points desc; head-to-head when exactly two participants are tied on
points and met each other; set difference desc; game difference desc;
participant id asc. Pure: identical input always yields identical output.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from progression.services.errors import IncompleteMatchError
from progression.services.records import (
    GroupRecord,
    MatchRecord,
    MatchStatus,
    ResolvedParticipant,
    StandingRow,
)
from progression.services.score_parser import SIDE_A, match_winner_side, summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointsScheme:
    """Points per match won/lost, plus an optional bonus per set won."""

    win: int = 1
    loss: int = 0
    per_set_won: int = 0

    @classmethod
    def from_settings(cls, settings) -> "PointsScheme":
        return cls(
            win=settings.points_per_win,
            loss=settings.points_per_loss,
            per_set_won=settings.points_per_set_won,
        )


@dataclass
class _Tally:
    played: int = 0
    won: int = 0
    lost: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0


def base_sort_key(row: StandingRow) -> Tuple[int, int, int, int]:
    """Sort key without head-to-head. Lower = better."""
    return (-row.points, -row.set_diff, -row.game_diff, row.participant_id)


def validate_completed_match(match: MatchRecord) -> None:
    """A completed match must have resolved sides and a derivable winner."""
    if not match.both_resolved:
        raise IncompleteMatchError(
            f"Match #{match.match_number} is completed but has an unresolved participant slot",
            match_number=match.match_number,
        )
    match_winner_side(match.sets, match.match_number)


def compute_standings(
    group: GroupRecord,
    matches: Iterable[MatchRecord],
    scheme: Optional[PointsScheme] = None,
) -> List[StandingRow]:
    """Compute the ranked standing table for one group.

    Only completed matches count. A completed match without scores or with an
    unresolved slot is malformed input and raises IncompleteMatchError rather
    than being skipped. Doubles sides credit every participant on the side.
    """
    scheme = scheme or PointsScheme()
    members = set(group.participant_ids)
    tallies: Dict[int, _Tally] = {pid: _Tally() for pid in group.participant_ids}
    # h2h[(x, y)] = number of meetings x won against y
    h2h: Dict[Tuple[int, int], int] = defaultdict(int)

    for match in sorted(matches, key=lambda m: m.match_number):
        if match.status is not MatchStatus.COMPLETED:
            continue
        validate_completed_match(match)
        assert isinstance(match.side_a, ResolvedParticipant)
        assert isinstance(match.side_b, ResolvedParticipant)

        side_a = match.side_a.participant_ids
        side_b = match.side_b.participant_ids
        if not (members.intersection(side_a) or members.intersection(side_b)):
            continue

        winner = match_winner_side(match.sets, match.match_number)
        score = summarize(match.sets)
        a_won = winner == SIDE_A

        for pid in side_a:
            if pid in members:
                _credit(tallies[pid], a_won, score.side_a_sets_won, score.side_b_sets_won,
                        score.side_a_games, score.side_b_games)
        for pid in side_b:
            if pid in members:
                _credit(tallies[pid], not a_won, score.side_b_sets_won, score.side_a_sets_won,
                        score.side_b_games, score.side_a_games)

        winners, losers = (side_a, side_b) if a_won else (side_b, side_a)
        for w in winners:
            for loser in losers:
                h2h[(w, loser)] += 1

    rows = [
        StandingRow(
            participant_id=pid,
            group_name=group.name,
            matches_played=t.played,
            matches_won=t.won,
            matches_lost=t.lost,
            sets_won=t.sets_won,
            sets_lost=t.sets_lost,
            games_won=t.games_won,
            games_lost=t.games_lost,
            points=t.won * scheme.win + t.lost * scheme.loss + t.sets_won * scheme.per_set_won,
        )
        for pid, t in tallies.items()
    ]
    ordered = _order_with_head_to_head(sorted(rows, key=base_sort_key), h2h)
    ranked = [replace(row, rank=index + 1) for index, row in enumerate(ordered)]

    logger.debug(
        "Standings group=%s: %s",
        group.name,
        [(r.rank, r.participant_id, r.points) for r in ranked],
    )
    return ranked


def _credit(tally: _Tally, won: bool, sets_for: int, sets_against: int, games_for: int, games_against: int) -> None:
    tally.played += 1
    if won:
        tally.won += 1
    else:
        tally.lost += 1
    tally.sets_won += sets_for
    tally.sets_lost += sets_against
    tally.games_won += games_for
    tally.games_lost += games_against


def _order_with_head_to_head(
    rows: List[StandingRow], h2h: Dict[Tuple[int, int], int]
) -> List[StandingRow]:
    """Apply head-to-head to blocks of exactly two participants tied on points."""
    result: List[StandingRow] = []
    i = 0
    while i < len(rows):
        j = i
        while j < len(rows) and rows[j].points == rows[i].points:
            j += 1
        block = rows[i:j]
        if len(block) == 2:
            first, second = block
            net = h2h.get((first.participant_id, second.participant_id), 0) - h2h.get(
                (second.participant_id, first.participant_id), 0
            )
            if net < 0:
                block = [second, first]
        result.extend(block)
        i = j
    return result


def compute_category_standings(
    groups: Sequence[GroupRecord],
    matches: Sequence[MatchRecord],
    scheme: Optional[PointsScheme] = None,
) -> Dict[str, List[StandingRow]]:
    """Standings for every group of a category, keyed by group name in name order.

    Matches tagged with a group name are only counted for that group.
    """
    standings: Dict[str, List[StandingRow]] = {}
    for group in sorted(groups, key=lambda g: g.name):
        group_matches = [m for m in matches if m.group_name in (None, group.name)]
        standings[group.name] = compute_standings(group, group_matches, scheme)
    return standings


def rank_across_groups(rows: Iterable[StandingRow]) -> List[StandingRow]:
    """Order rows from different groups (e.g. all third places) by record, then id."""
    return sorted(rows, key=base_sort_key)
