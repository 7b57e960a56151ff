"""
Engine records.

Plain, storage-agnostic records exchanged between the host layer and the
progression engine (standings, bracket generation, placeholder resolution,
league aggregation). Records are frozen; engine operations return new
records instead of mutating their inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from progression.services.errors import UnsupportedFormatError


class CategoryFormat(str, Enum):
    GROUP_ONLY = "group_only"
    GROUP_KNOCKOUT = "group_knockout"
    KNOCKOUT_ONLY = "knockout_only"
    CROSSED_PLAYOFFS = "crossed_playoffs"
    MIXED_GENDER = "mixed_gender"


class RoundTag(str, Enum):
    GROUP_STAGE = "group_stage"
    ROUND_OF_32 = "round_of_32"
    ROUND_OF_16 = "round_of_16"
    QUARTERFINAL = "quarterfinal"
    SEMIFINAL = "semifinal"
    FINAL = "final"
    THIRD_PLACE = "3rd_place"
    # Crossed playoffs (three ranked halves, doubles sides)
    CROSSED_R1 = "crossed_r1"
    CROSSED_SEMIFINAL = "crossed_semifinal"
    CROSSED_5TH_PLACE = "crossed_5th_place"
    CROSSED_FINAL = "crossed_final"
    CROSSED_3RD_PLACE = "crossed_3rd_place"
    # Mixed gender playoffs (two ranked halves, doubles sides)
    MIXED_SEMIFINAL = "mixed_semifinal"
    MIXED_FINAL = "mixed_final"
    MIXED_3RD_PLACE = "mixed_3rd_place"


KNOCKOUT_ROUNDS = frozenset(tag for tag in RoundTag if tag is not RoundTag.GROUP_STAGE)
FINAL_ROUNDS = frozenset({RoundTag.FINAL, RoundTag.CROSSED_FINAL, RoundTag.MIXED_FINAL})
THIRD_PLACE_ROUNDS = frozenset({RoundTag.THIRD_PLACE, RoundTag.CROSSED_3RD_PLACE, RoundTag.MIXED_3RD_PLACE})
SEMIFINAL_ROUNDS = frozenset({RoundTag.SEMIFINAL, RoundTag.CROSSED_SEMIFINAL, RoundTag.MIXED_SEMIFINAL})


class MatchStatus(str, Enum):
    PENDING_QUALIFICATION = "pending_qualification"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FeederOutcome(str, Enum):
    WINNER = "winner"
    LOSER = "loser"
    # Crossed playoffs: compare the losing sides of two feeder matches
    BEST_LOSER = "best_loser"
    WORST_LOSER = "worst_loser"


def parse_round_tag(value: Any) -> RoundTag:
    """Parse a stored round tag. The enumeration is closed; anything else is rejected."""
    if isinstance(value, RoundTag):
        return value
    try:
        return RoundTag(value)
    except ValueError:
        raise ValueError(f"Unknown round tag: {value!r}")


def parse_category_format(value: Any) -> CategoryFormat:
    if isinstance(value, CategoryFormat):
        return value
    try:
        return CategoryFormat(value)
    except ValueError:
        raise UnsupportedFormatError(f"Unsupported category format: {value!r}")


# ─── Participant slots ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ResolvedParticipant:
    """A concrete side: one participant id, or two for a crossed/mixed doubles pair."""

    participant_ids: Tuple[int, ...]

    def label(self) -> str:
        return " + ".join(str(pid) for pid in self.participant_ids)


@dataclass(frozen=True)
class PendingFeeder:
    """A side awaiting the outcome of one feeder match (or two, for best/worst loser)."""

    match_numbers: Tuple[int, ...]
    outcome: FeederOutcome

    def label(self) -> str:
        refs = "/".join(f"#{n}" for n in self.match_numbers)
        if self.outcome is FeederOutcome.WINNER:
            return f"Winner of {refs}"
        if self.outcome is FeederOutcome.LOSER:
            return f"Loser of {refs}"
        if self.outcome is FeederOutcome.BEST_LOSER:
            return f"Best loser of {refs}"
        return f"Worst loser of {refs}"


Slot = Union[ResolvedParticipant, PendingFeeder]


def resolved(*participant_ids: int) -> ResolvedParticipant:
    return ResolvedParticipant(tuple(participant_ids))


def winner_of(match_number: int) -> PendingFeeder:
    return PendingFeeder((match_number,), FeederOutcome.WINNER)


def loser_of(match_number: int) -> PendingFeeder:
    return PendingFeeder((match_number,), FeederOutcome.LOSER)


def is_resolved(slot: Optional[Slot]) -> bool:
    return isinstance(slot, ResolvedParticipant) and len(slot.participant_ids) > 0


def slot_label(slot: Optional[Slot]) -> str:
    if slot is None:
        return "TBD"
    return slot.label()


# ─── Matches, categories, groups ──────────────────────────────────────────


@dataclass(frozen=True)
class SetScore:
    a: int
    b: int


@dataclass(frozen=True)
class MatchRecord:
    tournament_id: int
    category_id: Optional[int]
    round: RoundTag
    match_number: int
    side_a: Slot
    side_b: Slot
    status: MatchStatus = MatchStatus.SCHEDULED
    sets: Tuple[SetScore, ...] = ()
    court: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    group_name: Optional[str] = None
    label: Optional[str] = None  # "SF1", "QF3", "J2" ...
    match_id: Optional[int] = None

    @property
    def both_resolved(self) -> bool:
        return is_resolved(self.side_a) and is_resolved(self.side_b)

    @property
    def is_knockout(self) -> bool:
        return self.round in KNOCKOUT_ROUNDS

    def participant_ids(self) -> Tuple[int, ...]:
        ids: Tuple[int, ...] = ()
        for slot in (self.side_a, self.side_b):
            if isinstance(slot, ResolvedParticipant):
                ids += slot.participant_ids
        return ids


@dataclass(frozen=True)
class CategoryRecord:
    id: Optional[int]
    tournament_id: int
    name: str
    format: CategoryFormat
    number_of_groups: int = 0
    knockout_stage: bool = True
    is_final: bool = False


@dataclass(frozen=True)
class GroupRecord:
    name: str
    participant_ids: Tuple[int, ...]


@dataclass(frozen=True)
class StandingRow:
    participant_id: int
    group_name: str
    matches_played: int = 0
    matches_won: int = 0
    matches_lost: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0
    points: int = 0
    rank: int = 0

    @property
    def set_diff(self) -> int:
        return self.sets_won - self.sets_lost

    @property
    def game_diff(self) -> int:
        return self.games_won - self.games_lost


# ─── Placements and leagues ───────────────────────────────────────────────


@dataclass(frozen=True)
class TournamentPlacement:
    tournament_id: int
    category_id: Optional[int]
    participant_id: int
    position: int


@dataclass(frozen=True)
class EntityLink:
    """Explicit, auditable participant -> durable entity (account) link."""

    participant_id: int
    entity_id: int


@dataclass(frozen=True)
class LeagueRecord:
    id: int
    name: str
    scoring_system: Mapping[int, int] = field(default_factory=dict)
    category_scoring_systems: Mapping[str, Mapping[int, int]] = field(default_factory=dict)

    def scale_for(self, league_category: Optional[str]) -> Mapping[int, int]:
        if league_category and league_category in self.category_scoring_systems:
            return self.category_scoring_systems[league_category]
        return self.scoring_system


@dataclass(frozen=True)
class LeagueStandingRow:
    league_id: int
    entity_id: int
    total_points: int
    tournaments_played: int
    best_position: Optional[int]
    rank: int


@dataclass(frozen=True)
class EngineEvent:
    """Output event for notification/administrative tooling."""

    kind: str  # "knockout_generated" | "knockout_already_generated" | "placeholders_resolved" | "league_recomputed" ...
    scope: str  # "category" | "tournament" | "league"
    scope_id: Optional[int]
    detail: Dict[str, Any] = field(default_factory=dict)
