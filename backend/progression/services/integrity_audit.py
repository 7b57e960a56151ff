"""
Tournament Integrity Audit
==========================
Read-only check of a tournament snapshot against the data invariants the
progression engine relies on. Never repairs anything: the report names
each defect so it can be fixed deliberately.

Codes:
  UNASSIGNED_PARTICIPANT      participant of a grouped category without a group
  NULL_CATEGORY_ID            knockout match without a category
  DUPLICATE_KNOCKOUT_ROUND    same final / 3rd-place round generated twice
  COMPLETED_WITH_PLACEHOLDER  completed match with an unresolved slot
  COMPLETED_WITHOUT_WINNER    completed match whose sets name no winner
  DUPLICATE_MATCH_NUMBER      match number reused within the tournament
  UNKNOWN_ROUND               stored round tag outside the closed set
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from progression.services.errors import IncompleteMatchError
from progression.services.records import (
    FINAL_ROUNDS,
    THIRD_PLACE_ROUNDS,
    CategoryRecord,
    MatchRecord,
    MatchStatus,
    RoundTag,
    parse_round_tag,
)
from progression.services.score_parser import match_winner_side


# ─── Data structures ─────────────────────────────────────────────────────

@dataclass
class Violation:
    code: str
    message: str
    category_id: Optional[int] = None
    match_number: Optional[int] = None
    participant_id: Optional[int] = None


@dataclass
class ParticipantAssignment:
    participant_id: int
    category_id: int
    group_name: Optional[str] = None


@dataclass
class IntegrityReport:
    ok: bool
    violations: List[Violation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "violations": [
                {
                    "code": v.code,
                    "message": v.message,
                    "category_id": v.category_id,
                    "match_number": v.match_number,
                    "participant_id": v.participant_id,
                }
                for v in self.violations
            ],
        }


# ─── Audit ───────────────────────────────────────────────────────────────

def audit_tournament(
    categories: Sequence[CategoryRecord],
    participants: Sequence[ParticipantAssignment],
    matches: Sequence[MatchRecord],
    raw_rounds: Sequence[Tuple[int, Any]] = (),
) -> IntegrityReport:
    """Check one tournament.

    ``raw_rounds`` holds (match_number, stored round value) pairs that could
    not be parsed into a MatchRecord; they are reported as UNKNOWN_ROUND.
    """
    violations: List[Violation] = []
    grouped = {c.id for c in categories if c.number_of_groups > 0}

    for p in sorted(participants, key=lambda p: p.participant_id):
        if p.category_id in grouped and not p.group_name:
            violations.append(Violation(
                code="UNASSIGNED_PARTICIPANT",
                message=f"Participant {p.participant_id} is not assigned to a group",
                category_id=p.category_id,
                participant_id=p.participant_id,
            ))

    for number, value in raw_rounds:
        try:
            parse_round_tag(value)
        except ValueError:
            violations.append(Violation(
                code="UNKNOWN_ROUND",
                message=f"Match #{number} has unknown round tag {value!r}",
                match_number=number,
            ))

    ordered = sorted(matches, key=lambda m: m.match_number)
    counts = Counter(m.match_number for m in ordered)
    for number in sorted(n for n, c in counts.items() if c > 1):
        violations.append(Violation(
            code="DUPLICATE_MATCH_NUMBER",
            message=f"Match number {number} is used by {counts[number]} matches",
            match_number=number,
        ))

    unique_rounds: Counter = Counter()
    for m in ordered:
        if m.is_knockout and m.category_id is None:
            violations.append(Violation(
                code="NULL_CATEGORY_ID",
                message=f"Knockout match #{m.match_number} ({m.round.value}) has no category",
                match_number=m.match_number,
            ))
        if m.round in FINAL_ROUNDS or m.round in THIRD_PLACE_ROUNDS:
            unique_rounds[(m.category_id, m.round)] += 1

        if m.status is MatchStatus.COMPLETED:
            if not m.both_resolved:
                violations.append(Violation(
                    code="COMPLETED_WITH_PLACEHOLDER",
                    message=f"Match #{m.match_number} is completed but has an unresolved slot",
                    category_id=m.category_id,
                    match_number=m.match_number,
                ))
            else:
                try:
                    match_winner_side(m.sets, m.match_number)
                except IncompleteMatchError as e:
                    violations.append(Violation(
                        code="COMPLETED_WITHOUT_WINNER",
                        message=str(e),
                        category_id=m.category_id,
                        match_number=m.match_number,
                    ))

    for (category_id, round_tag), count in sorted(
        unique_rounds.items(), key=lambda item: (item[0][0] or 0, item[0][1].value)
    ):
        if count > 1:
            violations.append(Violation(
                code="DUPLICATE_KNOCKOUT_ROUND",
                message=f"Category {category_id} has {count} '{RoundTag(round_tag).value}' matches",
                category_id=category_id,
            ))

    return IntegrityReport(ok=not violations, violations=violations)
