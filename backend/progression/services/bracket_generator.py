"""
Knockout bracket generation.

Turns ranked groups (or a fixed seeded list) into the knockout match tree
for one category: first-round pairings, downstream placeholder wiring,
contiguous match numbers and forward-walking time slots.

Formats:
  group_knockout, knockout_only: single elimination, bracket-fold seeding,
      same-group first-round avoidance, byes for non power-of-two draws,
      optional 3rd-place match fed by semifinal losers.
  mixed_gender: two ranked halves A/B, doubles sides:
      SF1 (A1+B2) vs (A2+B1), SF2 (A3+B4) vs (A4+B3), final, 3rd place.
  crossed_playoffs: three ranked halves A/B/C, doubles sides:
      J1 (A1+C4) vs (A2+C3), J2 (A3+B1) vs (A4+B2), J3 (B3+C2) vs (B4+C1);
      SF1 W(J1) vs W(J2), SF2 W(J3) vs best loser(J1,J2),
      5th place L(J3) vs worst loser(J1,J2); final, 3rd place.

Guarantees:
  - Pure: no I/O; returns a KnockoutPlan for the caller to persist atomically.
  - Idempotent: an existing knockout round for the category yields
    already_generated=True and zero matches.
  - Every generated match carries the category id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from progression.services.errors import InsufficientQualifiersError, UnsupportedFormatError
from progression.services.records import (
    CategoryFormat,
    CategoryRecord,
    EngineEvent,
    FeederOutcome,
    MatchRecord,
    MatchStatus,
    PendingFeeder,
    ResolvedParticipant,
    RoundTag,
    Slot,
    StandingRow,
    is_resolved,
    loser_of,
    parse_category_format,
    resolved,
    winner_of,
)
from progression.services.standings_calculator import rank_across_groups
from progression.utils.bracket_seeding import PairingConflict, Seed, build_first_round

logger = logging.getLogger(__name__)

MAX_BRACKET_SIZE = 32
MIN_HALF_SIZE = 4

_ROUND_BY_SIZE: Dict[int, RoundTag] = {
    32: RoundTag.ROUND_OF_32,
    16: RoundTag.ROUND_OF_16,
    8: RoundTag.QUARTERFINAL,
    4: RoundTag.SEMIFINAL,
    2: RoundTag.FINAL,
}

_LABEL_PREFIX: Dict[RoundTag, str] = {
    RoundTag.ROUND_OF_32: "R32-",
    RoundTag.ROUND_OF_16: "R16-",
    RoundTag.QUARTERFINAL: "QF",
    RoundTag.SEMIFINAL: "SF",
}


@dataclass(frozen=True)
class KnockoutConfig:
    qualifiers_per_group: int = 2
    slot_minutes: int = 60
    third_place_match: bool = True
    fill_to_power_of_two: bool = True
    schedule_override: Optional[Tuple[datetime, ...]] = None
    courts: Tuple[str, ...] = ("1",)
    start_time: Optional[datetime] = None
    seeded_participant_ids: Tuple[int, ...] = ()

    @classmethod
    def from_settings(cls, settings, **overrides) -> "KnockoutConfig":
        values = {
            "qualifiers_per_group": settings.default_qualifiers_per_group,
            "slot_minutes": settings.knockout_slot_minutes,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class CrossingRule:
    """Ranked participant ids per half, best first (e.g. men / women categories)."""

    halves: Tuple[Tuple[int, ...], ...]
    half_names: Tuple[str, ...] = ()

    def name_of(self, index: int) -> str:
        if index < len(self.half_names):
            return self.half_names[index]
        return chr(ord("A") + index)


@dataclass(frozen=True)
class KnockoutPlan:
    category_id: Optional[int]
    matches: Tuple[MatchRecord, ...] = ()
    already_generated: bool = False
    seeds: Tuple[int, ...] = ()
    conflicts: Tuple[str, ...] = ()
    events: Tuple[EngineEvent, ...] = ()


@dataclass
class _Draft:
    round: RoundTag
    label: str
    side_a: Slot
    side_b: Slot
    match_number: int


@dataclass
class _DraftBuilder:
    next_number: int
    drafts: List[_Draft] = field(default_factory=list)

    def add(self, round_tag: RoundTag, label: str, side_a: Slot, side_b: Slot) -> int:
        number = self.next_number
        self.drafts.append(_Draft(round_tag, label, side_a, side_b, number))
        self.next_number += 1
        return number


def generate_knockout_stage(
    category: CategoryRecord,
    group_standings: Mapping[str, Sequence[StandingRow]],
    config: Optional[KnockoutConfig] = None,
    existing_matches: Sequence[MatchRecord] = (),
    crossing: Optional[CrossingRule] = None,
) -> KnockoutPlan:
    """Produce the knockout matches for *category*.

    Args:
        category: The category the bracket belongs to (its id is propagated).
        group_standings: Ranked rows per group name (output of compute_category_standings).
        config: Seeding, scheduling and 3rd-place options.
        existing_matches: Every match already stored for the tournament; used for the
            already-generated guard, group-stage completeness, match numbering and timing.
        crossing: Explicit halves for crossed/mixed formats spanning two or three
            logical categories. Defaults to the category's own groups in name order.

    Raises:
        UnsupportedFormatError: unknown format, group-only category, or bracket too large.
        InsufficientQualifiersError: fewer ranked participants than slots, or the
            group stage is still open.
        ValueError: category without id, or schedule_override of the wrong length.
    """
    config = config or KnockoutConfig()
    fmt = parse_category_format(category.format)
    if category.id is None:
        raise ValueError("Cannot generate a knockout stage for a category without an id")

    category_matches = [m for m in existing_matches if m.category_id == category.id]
    existing_knockout = sorted(m.match_number for m in category_matches if m.is_knockout)
    if existing_knockout:
        logger.info(
            "Knockout already generated for category %d (%d matches); no-op",
            category.id,
            len(existing_knockout),
        )
        event = EngineEvent(
            kind="knockout_already_generated",
            scope="category",
            scope_id=category.id,
            detail={"existing_match_numbers": existing_knockout},
        )
        return KnockoutPlan(category_id=category.id, already_generated=True, events=(event,))

    if fmt is CategoryFormat.GROUP_ONLY or not category.knockout_stage:
        raise UnsupportedFormatError(
            f"Category '{category.name}' ({fmt.value}) has no knockout stage"
        )

    _require_group_stage_finished(category_matches)

    start_number = max((m.match_number for m in existing_matches), default=0) + 1
    builder = _DraftBuilder(next_number=start_number)
    conflicts: List[PairingConflict] = []
    seeds: List[int] = []

    if fmt is CategoryFormat.GROUP_KNOCKOUT:
        seed_list = _group_seeds(group_standings, config)
        seeds = [s.participant_id for s in seed_list]
        conflicts = _single_elimination(builder, seed_list, config)
    elif fmt is CategoryFormat.KNOCKOUT_ONLY:
        seed_list = _fixed_seeds(group_standings, config)
        seeds = [s.participant_id for s in seed_list]
        conflicts = _single_elimination(builder, seed_list, config)
    elif fmt is CategoryFormat.MIXED_GENDER:
        rule = crossing or _crossing_from_groups(group_standings)
        _mixed_gender(builder, _checked_halves(rule, 2, fmt), config)
    elif fmt is CategoryFormat.CROSSED_PLAYOFFS:
        rule = crossing or _crossing_from_groups(group_standings)
        _crossed_playoffs(builder, _checked_halves(rule, 3, fmt), config)
    else:  # pragma: no cover - enum is closed
        raise UnsupportedFormatError(f"Unsupported category format: {fmt!r}")

    if fmt in (CategoryFormat.MIXED_GENDER, CategoryFormat.CROSSED_PLAYOFFS):
        _require_doubles_filled(builder.drafts)

    matches = _finalize(category, builder.drafts, existing_matches, config)
    conflict_messages = tuple(c.reason for c in conflicts)
    for message in conflict_messages:
        logger.warning("Category %d: %s", category.id, message)

    event = EngineEvent(
        kind="knockout_generated",
        scope="category",
        scope_id=category.id,
        detail={
            "format": fmt.value,
            "match_numbers": [m.match_number for m in matches],
            "conflicts": list(conflict_messages),
        },
    )
    logger.info(
        "Generated %d knockout matches for category %d (%s), numbers %d-%d",
        len(matches),
        category.id,
        fmt.value,
        matches[0].match_number,
        matches[-1].match_number,
    )
    return KnockoutPlan(
        category_id=category.id,
        matches=tuple(matches),
        seeds=tuple(seeds),
        conflicts=conflict_messages,
        events=(event,),
    )


# ─── Preconditions ───────────────────────────────────────────────────────


def _require_group_stage_finished(category_matches: Sequence[MatchRecord]) -> None:
    open_matches = [
        m.match_number
        for m in category_matches
        if m.round is RoundTag.GROUP_STAGE
        and m.status not in (MatchStatus.COMPLETED, MatchStatus.CANCELLED)
    ]
    if open_matches:
        raise InsufficientQualifiersError(
            f"Group stage not finished: {len(open_matches)} group matches still open "
            f"(match numbers {sorted(open_matches)})"
        )


def _ranked(rows: Sequence[StandingRow]) -> List[StandingRow]:
    """Rows of participants who actually played, in rank order."""
    return [r for r in sorted(rows, key=lambda r: (r.rank, r.participant_id)) if r.matches_played > 0]


# ─── Seeding ─────────────────────────────────────────────────────────────


def _group_seeds(group_standings: Mapping[str, Sequence[StandingRow]], config: KnockoutConfig) -> List[Seed]:
    """Seed order: every group winner (group-name order), then every runner-up, ...

    With fill_to_power_of_two, the best next-place finishers across groups
    complete the draw; anything still missing becomes a bye.
    """
    per_group = config.qualifiers_per_group
    if per_group < 1:
        raise ValueError(f"qualifiers_per_group must be >= 1, got {per_group}")
    if not group_standings:
        raise InsufficientQualifiersError(
            "Category has no ranked groups", required=per_group, available=0
        )

    names = sorted(group_standings)
    ranked = {name: _ranked(group_standings[name]) for name in names}

    required = per_group * len(names)
    available = sum(min(len(rows), per_group) for rows in ranked.values())
    if available < required:
        short = [name for name in names if len(ranked[name]) < per_group]
        raise InsufficientQualifiersError(
            f"Category has {required} qualifying slots but only {available} ranked participants "
            f"(short groups: {', '.join(short)})",
            required=required,
            available=available,
        )

    seeds: List[Seed] = []
    for position in range(per_group):
        for name in names:
            row = ranked[name][position]
            seeds.append(Seed(seed=len(seeds) + 1, participant_id=row.participant_id, group_name=name))

    target = 1
    while target < len(seeds):
        target *= 2
    if config.fill_to_power_of_two and target > len(seeds):
        candidates = [ranked[name][per_group] for name in names if len(ranked[name]) > per_group]
        for row in rank_across_groups(candidates)[: target - len(seeds)]:
            seeds.append(Seed(seed=len(seeds) + 1, participant_id=row.participant_id, group_name=row.group_name))

    return seeds


def _fixed_seeds(group_standings: Mapping[str, Sequence[StandingRow]], config: KnockoutConfig) -> List[Seed]:
    ids = list(config.seeded_participant_ids)
    if not ids:
        rows = [r for name in sorted(group_standings) for r in _ranked(group_standings[name])]
        ids = [r.participant_id for r in rank_across_groups(rows)]
    if len(set(ids)) != len(ids):
        raise ValueError("seeded_participant_ids contains duplicates")
    if len(ids) < 2:
        raise InsufficientQualifiersError(
            f"Knockout draw needs at least 2 qualifiers but only {len(ids)} were supplied",
            required=2,
            available=len(ids),
        )
    return [Seed(seed=i + 1, participant_id=pid) for i, pid in enumerate(ids)]


# ─── Single elimination ──────────────────────────────────────────────────


def _single_elimination(builder: _DraftBuilder, seeds: List[Seed], config: KnockoutConfig) -> List[PairingConflict]:
    first_round = build_first_round(seeds)
    if first_round.bracket_size > MAX_BRACKET_SIZE:
        raise UnsupportedFormatError(
            f"Bracket of {first_round.bracket_size} exceeds the supported maximum of {MAX_BRACKET_SIZE}"
        )

    entries: List[Optional[Slot]] = []
    for top, low in first_round.pairs:
        entries.append(resolved(top.participant_id) if top else None)
        entries.append(resolved(low.participant_id) if low else None)

    semifinals: List[int] = []
    while len(entries) > 1:
        round_tag = _ROUND_BY_SIZE[len(entries)]
        next_entries: List[Optional[Slot]] = []
        created = 0
        for i in range(0, len(entries), 2):
            side_a, side_b = entries[i], entries[i + 1]
            if side_a is not None and side_b is not None:
                created += 1
                label = _LABEL_PREFIX.get(round_tag, "") + str(created) if round_tag is not RoundTag.FINAL else "F"
                number = builder.add(round_tag, label, side_a, side_b)
                next_entries.append(winner_of(number))
                if round_tag is RoundTag.SEMIFINAL:
                    semifinals.append(number)
            else:
                # Bye: the present side advances without a match
                next_entries.append(side_a if side_a is not None else side_b)
        entries = next_entries

    if config.third_place_match and len(semifinals) == 2:
        builder.add(RoundTag.THIRD_PLACE, "3P", loser_of(semifinals[0]), loser_of(semifinals[1]))

    return first_round.conflicts


# ─── Crossed / mixed ─────────────────────────────────────────────────────


def _crossing_from_groups(group_standings: Mapping[str, Sequence[StandingRow]]) -> CrossingRule:
    names = sorted(group_standings)
    return CrossingRule(
        halves=tuple(tuple(r.participant_id for r in _ranked(group_standings[name])) for name in names),
        half_names=tuple(names),
    )


def _checked_halves(rule: CrossingRule, expected: int, fmt: CategoryFormat) -> List[Tuple[int, ...]]:
    if len(rule.halves) != expected:
        raise UnsupportedFormatError(
            f"{fmt.value} crossing needs exactly {expected} ranked halves, got {len(rule.halves)}"
        )
    for index, half in enumerate(rule.halves):
        if len(half) < MIN_HALF_SIZE:
            raise InsufficientQualifiersError(
                f"Half {rule.name_of(index)} has {MIN_HALF_SIZE} qualifying slots "
                f"but only {len(half)} ranked participants",
                required=MIN_HALF_SIZE,
                available=len(half),
            )
    return [tuple(half) for half in rule.halves]


def _mixed_gender(builder: _DraftBuilder, halves: List[Tuple[int, ...]], config: KnockoutConfig) -> None:
    a, b = halves
    sf1 = builder.add(RoundTag.MIXED_SEMIFINAL, "SF1", resolved(a[0], b[1]), resolved(a[1], b[0]))
    sf2 = builder.add(RoundTag.MIXED_SEMIFINAL, "SF2", resolved(a[2], b[3]), resolved(a[3], b[2]))
    builder.add(RoundTag.MIXED_FINAL, "F", winner_of(sf1), winner_of(sf2))
    if config.third_place_match:
        builder.add(RoundTag.MIXED_3RD_PLACE, "3P", loser_of(sf1), loser_of(sf2))


def _crossed_playoffs(builder: _DraftBuilder, halves: List[Tuple[int, ...]], config: KnockoutConfig) -> None:
    a, b, c = halves
    j1 = builder.add(RoundTag.CROSSED_R1, "J1", resolved(a[0], c[3]), resolved(a[1], c[2]))
    j2 = builder.add(RoundTag.CROSSED_R1, "J2", resolved(a[2], b[0]), resolved(a[3], b[1]))
    j3 = builder.add(RoundTag.CROSSED_R1, "J3", resolved(b[2], c[1]), resolved(b[3], c[0]))
    sf1 = builder.add(RoundTag.CROSSED_SEMIFINAL, "SF1", winner_of(j1), winner_of(j2))
    sf2 = builder.add(
        RoundTag.CROSSED_SEMIFINAL,
        "SF2",
        winner_of(j3),
        PendingFeeder((j1, j2), FeederOutcome.BEST_LOSER),
    )
    builder.add(
        RoundTag.CROSSED_5TH_PLACE,
        "5P",
        loser_of(j3),
        PendingFeeder((j1, j2), FeederOutcome.WORST_LOSER),
    )
    builder.add(RoundTag.CROSSED_FINAL, "F", winner_of(sf1), winner_of(sf2))
    if config.third_place_match:
        builder.add(RoundTag.CROSSED_3RD_PLACE, "3P", loser_of(sf1), loser_of(sf2))


def _require_doubles_filled(drafts: Sequence[_Draft]) -> None:
    """Resolved doubles matches must name four distinct participants."""
    for draft in drafts:
        if not (is_resolved(draft.side_a) and is_resolved(draft.side_b)):
            continue
        assert isinstance(draft.side_a, ResolvedParticipant)
        assert isinstance(draft.side_b, ResolvedParticipant)
        ids = draft.side_a.participant_ids + draft.side_b.participant_ids
        if len(ids) != 4 or len(set(ids)) != 4:
            raise InsufficientQualifiersError(
                f"{draft.label} needs 4 distinct participants but has {len(set(ids))} ({list(ids)})",
                required=4,
                available=len(set(ids)),
            )


# ─── Numbering / scheduling ──────────────────────────────────────────────


def _schedule_times(
    count: int, existing_matches: Sequence[MatchRecord], config: KnockoutConfig
) -> List[Optional[datetime]]:
    if config.schedule_override is not None:
        if len(config.schedule_override) != count:
            raise ValueError(
                f"schedule_override has {len(config.schedule_override)} times for {count} matches"
            )
        return list(config.schedule_override)

    step = timedelta(minutes=config.slot_minutes)
    scheduled = [m.scheduled_time for m in existing_matches if m.scheduled_time is not None]
    if scheduled:
        latest = max(scheduled)
        return [latest + step * (i + 1) for i in range(count)]
    if config.start_time is not None:
        return [config.start_time + step * i for i in range(count)]
    return [None] * count


def _finalize(
    category: CategoryRecord,
    drafts: Sequence[_Draft],
    existing_matches: Sequence[MatchRecord],
    config: KnockoutConfig,
) -> List[MatchRecord]:
    times = _schedule_times(len(drafts), existing_matches, config)
    courts = config.courts or ("1",)
    matches: List[MatchRecord] = []
    for i, draft in enumerate(drafts):
        both = is_resolved(draft.side_a) and is_resolved(draft.side_b)
        matches.append(
            MatchRecord(
                tournament_id=category.tournament_id,
                category_id=category.id,
                round=draft.round,
                match_number=draft.match_number,
                side_a=draft.side_a,
                side_b=draft.side_b,
                status=MatchStatus.SCHEDULED if both else MatchStatus.PENDING_QUALIFICATION,
                court=courts[i % len(courts)],
                scheduled_time=times[i],
                label=draft.label,
            )
        )
    return matches
