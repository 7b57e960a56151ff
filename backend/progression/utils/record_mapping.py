"""
Row <-> engine record mapping.

The engine works on frozen records; the host stores SQLModel rows. These
helpers are the only place that knows both shapes.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional

from progression.models.category import Category
from progression.models.entity import EntityLink as EntityLinkRow
from progression.models.league import League
from progression.models.match import Match
from progression.models.participant import Participant
from progression.services.records import (
    CategoryRecord,
    EntityLink,
    FeederOutcome,
    GroupRecord,
    LeagueRecord,
    MatchRecord,
    MatchStatus,
    PendingFeeder,
    ResolvedParticipant,
    Slot,
    parse_category_format,
    parse_round_tag,
)
from progression.services.score_parser import parse_sets, sets_to_json


def slot_to_json(slot: Slot) -> Dict[str, Any]:
    if isinstance(slot, ResolvedParticipant):
        return {"participant_ids": list(slot.participant_ids)}
    return {"feeder_match_numbers": list(slot.match_numbers), "outcome": slot.outcome.value}


def slot_from_json(data: Optional[Mapping[str, Any]]) -> Slot:
    if not data:
        raise ValueError("Empty participant slot")
    if "participant_ids" in data:
        return ResolvedParticipant(tuple(int(pid) for pid in data["participant_ids"]))
    return PendingFeeder(
        match_numbers=tuple(int(n) for n in data["feeder_match_numbers"]),
        outcome=FeederOutcome(data["outcome"]),
    )


def match_to_record(match: Match) -> MatchRecord:
    """Raises ValueError for a stored round tag outside the closed set."""
    return MatchRecord(
        match_id=match.id,
        tournament_id=match.tournament_id,
        category_id=match.category_id,
        round=parse_round_tag(match.round),
        match_number=match.match_number,
        side_a=slot_from_json(match.side_a),
        side_b=slot_from_json(match.side_b),
        status=MatchStatus(match.status),
        sets=parse_sets(match.sets),
        court=match.court,
        scheduled_time=match.scheduled_time,
        group_name=match.group_name,
        label=match.label,
    )


def record_to_match(record: MatchRecord) -> Match:
    return Match(
        tournament_id=record.tournament_id,
        category_id=record.category_id,
        round=record.round.value,
        match_number=record.match_number,
        group_name=record.group_name,
        label=record.label,
        side_a=slot_to_json(record.side_a),
        side_b=slot_to_json(record.side_b),
        status=record.status.value,
        sets=sets_to_json(record.sets) if record.sets else None,
        court=record.court,
        scheduled_time=record.scheduled_time,
    )


def apply_slots(match: Match, record: MatchRecord) -> None:
    """Copy the fields placeholder resolution may change back onto a row."""
    match.side_a = slot_to_json(record.side_a)
    match.side_b = slot_to_json(record.side_b)
    match.status = record.status.value


def category_to_record(category: Category) -> CategoryRecord:
    return CategoryRecord(
        id=category.id,
        tournament_id=category.tournament_id,
        name=category.name,
        format=parse_category_format(category.format),
        number_of_groups=category.number_of_groups,
        knockout_stage=category.knockout_stage,
        is_final=category.is_final,
    )


def groups_from_participants(participants: Iterable[Participant]) -> List[GroupRecord]:
    """Groups in name order; unassigned participants are left out.

    Knockout generation refuses a grouped category that still has any.
    """
    members: Dict[str, List[int]] = defaultdict(list)
    for p in sorted(participants, key=lambda p: p.id):
        if p.group_name:
            members[p.group_name].append(p.id)
    return [GroupRecord(name=name, participant_ids=tuple(ids)) for name, ids in sorted(members.items())]


def scale_from_json(raw: Optional[Mapping[str, Any]]) -> Dict[int, int]:
    return {int(position): int(points) for position, points in (raw or {}).items()}


def league_to_record(league: League) -> LeagueRecord:
    return LeagueRecord(
        id=league.id,
        name=league.name,
        scoring_system=scale_from_json(league.scoring_system),
        category_scoring_systems={
            name: scale_from_json(scale) for name, scale in (league.category_scoring_systems or {}).items()
        },
    )


def link_to_record(link: EntityLinkRow) -> EntityLink:
    return EntityLink(participant_id=link.participant_id, entity_id=link.entity_id)
