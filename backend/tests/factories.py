"""Record builders shared by the engine tests."""
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence

from progression.services.records import (
    CategoryFormat,
    CategoryRecord,
    GroupRecord,
    MatchRecord,
    MatchStatus,
    PendingFeeder,
    ResolvedParticipant,
    RoundTag,
    resolved,
)
from progression.services.score_parser import parse_sets

TOURNAMENT_ID = 1
CATEGORY_ID = 10


def _side(value):
    if isinstance(value, (ResolvedParticipant, PendingFeeder)):
        return value
    if isinstance(value, tuple):
        return resolved(*value)
    return resolved(value)


def make_match(
    number: int,
    a,
    b,
    sets: Optional[str] = None,
    status: MatchStatus = MatchStatus.COMPLETED,
    round: RoundTag = RoundTag.GROUP_STAGE,
    category_id: Optional[int] = CATEGORY_ID,
    group: Optional[str] = None,
    scheduled_time: Optional[datetime] = None,
) -> MatchRecord:
    return MatchRecord(
        tournament_id=TOURNAMENT_ID,
        category_id=category_id,
        round=round,
        match_number=number,
        side_a=_side(a),
        side_b=_side(b),
        status=status,
        sets=parse_sets(sets) if sets else (),
        group_name=group,
        scheduled_time=scheduled_time,
    )


def round_robin(
    group: str,
    ids: Sequence[int],
    start_number: int,
    category_id: int = CATEGORY_ID,
    scheduled_time: Optional[datetime] = None,
) -> List[MatchRecord]:
    """Every pair meets once; the id listed first wins 6-2 6-3."""
    matches = []
    number = start_number
    for i in range(len(ids)):
        for j in range(i + 1, len(ids)):
            matches.append(
                make_match(number, ids[i], ids[j], "6-2 6-3", group=group,
                           category_id=category_id, scheduled_time=scheduled_time)
            )
            number += 1
    return matches


def make_category(
    format=CategoryFormat.GROUP_KNOCKOUT,
    id: Optional[int] = CATEGORY_ID,
    number_of_groups: int = 2,
    **kwargs,
) -> CategoryRecord:
    return CategoryRecord(
        id=id,
        tournament_id=TOURNAMENT_ID,
        name=kwargs.pop("name", "Open"),
        format=format,
        number_of_groups=number_of_groups,
        **kwargs,
    )


def group(name: str, ids: Sequence[int]) -> GroupRecord:
    return GroupRecord(name=name, participant_ids=tuple(ids))


def complete(matches: Sequence[MatchRecord], number: int, sets: str) -> List[MatchRecord]:
    """Return *matches* with match *number* completed with *sets*."""
    return [
        replace(m, status=MatchStatus.COMPLETED, sets=parse_sets(sets)) if m.match_number == number else m
        for m in matches
    ]


def by_number(matches: Sequence[MatchRecord], number: int) -> MatchRecord:
    return next(m for m in matches if m.match_number == number)
