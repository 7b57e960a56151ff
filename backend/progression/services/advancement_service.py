"""
Advancement: when a knockout match completes, fill the downstream slots
that wait on it.

Only participant slots (and the pending_qualification -> scheduled status
step) change; numbers, times and courts of downstream matches are never
touched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

from progression.services.errors import IncompleteMatchError
from progression.services.records import (
    EngineEvent,
    FeederOutcome,
    MatchRecord,
    MatchStatus,
    PendingFeeder,
    ResolvedParticipant,
    Slot,
)
from progression.services.score_parser import SIDE_A, match_winner_side, summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdvancementResult:
    matches: Tuple[MatchRecord, ...]
    updated_match_numbers: Tuple[int, ...] = ()
    events: Tuple[EngineEvent, ...] = field(default_factory=tuple)


def winner_and_loser(match: MatchRecord) -> Tuple[ResolvedParticipant, ResolvedParticipant]:
    """Winning and losing sides of a completed match."""
    if not match.both_resolved:
        raise IncompleteMatchError(
            f"Match #{match.match_number} is completed but has an unresolved participant slot",
            match_number=match.match_number,
        )
    assert isinstance(match.side_a, ResolvedParticipant)
    assert isinstance(match.side_b, ResolvedParticipant)
    if match_winner_side(match.sets, match.match_number) == SIDE_A:
        return match.side_a, match.side_b
    return match.side_b, match.side_a


def _loser_key(match: MatchRecord) -> Tuple[int, int]:
    """Lower = better loser: more games won by the losing side, then lower match number."""
    score = summarize(match.sets)
    if match_winner_side(match.sets, match.match_number) == SIDE_A:
        games_for = score.side_b_games
    else:
        games_for = score.side_a_games
    return (-games_for, match.match_number)


def _substitute(slot: Slot, by_number: Dict[int, MatchRecord]) -> Optional[ResolvedParticipant]:
    """Resolved side for a pending slot, or None while its feeders are still open."""
    if not isinstance(slot, PendingFeeder):
        return None
    feeders = [by_number.get(n) for n in slot.match_numbers]
    if any(f is None or f.status is not MatchStatus.COMPLETED for f in feeders):
        return None

    if slot.outcome is FeederOutcome.WINNER:
        return winner_and_loser(feeders[0])[0]
    if slot.outcome is FeederOutcome.LOSER:
        return winner_and_loser(feeders[0])[1]

    ranked = sorted(feeders, key=_loser_key)
    chosen = ranked[0] if slot.outcome is FeederOutcome.BEST_LOSER else ranked[-1]
    return winner_and_loser(chosen)[1]


def resolve_placeholder(matches: Sequence[MatchRecord], completed_match_number: int) -> AdvancementResult:
    """Substitute every slot that waits on *completed_match_number*.

    Returns every match (updated ones replaced) in input order.

    Guarantees:
        - Idempotent (a second call changes nothing)
        - Best/worst loser slots wait until both feeders are complete
        - A match whose two slots are now resolved moves to scheduled

    Raises:
        ValueError: the referenced match does not exist or is not completed.
        IncompleteMatchError: the completed match has no derivable winner.
    """
    by_number = {m.match_number: m for m in matches}
    feeder = by_number.get(completed_match_number)
    if feeder is None:
        raise ValueError(f"Match #{completed_match_number} does not exist")
    if feeder.status is not MatchStatus.COMPLETED:
        raise ValueError(
            f"Match #{completed_match_number} is {feeder.status.value}; only completed matches feed placeholders"
        )
    winner_and_loser(feeder)

    updated: List[int] = []
    result: List[MatchRecord] = []
    for match in matches:
        changes = {}
        for side in ("side_a", "side_b"):
            slot = getattr(match, side)
            if isinstance(slot, PendingFeeder) and completed_match_number in slot.match_numbers:
                substitute = _substitute(slot, by_number)
                if substitute is not None:
                    changes[side] = substitute
        if not changes:
            result.append(match)
            continue

        new_match = replace(match, **changes)
        if new_match.both_resolved and new_match.status is MatchStatus.PENDING_QUALIFICATION:
            new_match = replace(new_match, status=MatchStatus.SCHEDULED)
        result.append(new_match)
        updated.append(match.match_number)

    events: Tuple[EngineEvent, ...] = ()
    if updated:
        logger.info(
            "Match #%d completed; resolved placeholders in matches %s", completed_match_number, updated
        )
        events = (
            EngineEvent(
                kind="placeholders_resolved",
                scope="tournament",
                scope_id=feeder.tournament_id,
                detail={"completed_match_number": completed_match_number, "updated_match_numbers": updated},
            ),
        )
    return AdvancementResult(matches=tuple(result), updated_match_numbers=tuple(updated), events=events)


def resolve_all_placeholders(matches: Sequence[MatchRecord]) -> AdvancementResult:
    """Bulk repair: replay every completed feeder in match-number order."""
    current: Tuple[MatchRecord, ...] = tuple(matches)
    updated: List[int] = []
    events: List[EngineEvent] = []

    referenced = {
        number
        for m in current
        for slot in (m.side_a, m.side_b)
        if isinstance(slot, PendingFeeder)
        for number in slot.match_numbers
    }
    completed = sorted(
        m.match_number for m in current if m.status is MatchStatus.COMPLETED and m.match_number in referenced
    )
    for number in completed:
        step = resolve_placeholder(current, number)
        current = step.matches
        updated.extend(n for n in step.updated_match_numbers if n not in updated)
        events.extend(step.events)

    return AdvancementResult(matches=current, updated_match_numbers=tuple(sorted(updated)), events=tuple(events))
