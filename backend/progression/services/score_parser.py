"""
Set score parsing and winner derivation.

Supports:
  [SetScore(6, 3), SetScore(4, 6)]      → structured sets
  [{"a": 6, "b": 3}, {"a": 4, "b": 6}]  → stored JSON sets
  [[6, 3], [4, 6]]                       → pair lists
  "6-3 4-6 10-7" / "6-3, 4-6, 10-7"      → display strings

A match holds at most MAX_SETS sets. Malformed input raises ValueError;
a completed match whose sets do not name a winner raises IncompleteMatchError.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from progression.services.errors import IncompleteMatchError
from progression.services.records import SetScore

MAX_SETS = 3

SIDE_A = "a"
SIDE_B = "b"


@dataclass
class ParsedScore:
    sets: List[Tuple[int, int]]  # (side_a_games, side_b_games) per set
    side_a_sets_won: int
    side_b_sets_won: int
    side_a_games: int
    side_b_games: int


def parse_sets(raw: Any) -> Tuple[SetScore, ...]:
    """Normalize any accepted score shape into a tuple of SetScore."""
    if raw is None:
        return ()
    if isinstance(raw, str):
        pairs = _parse_score_string(raw)
    elif isinstance(raw, dict):
        if "sets" in raw:
            return parse_sets(raw["sets"])
        return parse_sets(raw.get("display") or raw.get("score"))
    else:
        pairs = [_parse_one_set(s) for s in raw]

    if len(pairs) > MAX_SETS:
        raise ValueError(f"At most {MAX_SETS} sets per match, got {len(pairs)}")
    for a, b in pairs:
        if a < 0 or b < 0:
            raise ValueError(f"Set games must be non-negative, got {a}-{b}")
    return tuple(SetScore(a, b) for a, b in pairs)


def _parse_one_set(s: Any) -> Tuple[int, int]:
    if isinstance(s, SetScore):
        return s.a, s.b
    if isinstance(s, dict):
        return int(s.get("a", 0)), int(s.get("b", 0))
    if isinstance(s, (list, tuple)) and len(s) == 2:
        return int(s[0]), int(s[1])
    raise ValueError(f"Unrecognized set score: {s!r}")


def _parse_score_string(raw: str) -> List[Tuple[int, int]]:
    """Parse strings like '8-4', '6-3 4-6 10-7', '6-3, 4-6, 10-7'."""
    normalized = raw.replace(",", " ").strip()
    pairs: List[Tuple[int, int]] = []
    for part in normalized.split():
        pair = part.split("-")
        if len(pair) != 2:
            raise ValueError(f"Unrecognized set score: {part!r}")
        try:
            pairs.append((int(pair[0]), int(pair[1])))
        except ValueError:
            raise ValueError(f"Unrecognized set score: {part!r}")
    return pairs


def summarize(sets: Iterable[SetScore]) -> ParsedScore:
    pairs = [(s.a, s.b) for s in sets]
    return ParsedScore(
        sets=pairs,
        side_a_sets_won=sum(1 for a, b in pairs if a > b),
        side_b_sets_won=sum(1 for a, b in pairs if b > a),
        side_a_games=sum(a for a, _ in pairs),
        side_b_games=sum(b for _, b in pairs),
    )


def match_winner_side(sets: Sequence[SetScore], match_number: Optional[int] = None) -> str:
    """Return SIDE_A or SIDE_B. More sets won decides, then more total games."""
    if not sets:
        raise IncompleteMatchError(
            f"Match #{match_number} is completed but has no set scores", match_number=match_number
        )
    score = summarize(sets)
    if score.side_a_sets_won != score.side_b_sets_won:
        return SIDE_A if score.side_a_sets_won > score.side_b_sets_won else SIDE_B
    if score.side_a_games != score.side_b_games:
        return SIDE_A if score.side_a_games > score.side_b_games else SIDE_B
    raise IncompleteMatchError(
        f"Match #{match_number} has no winner derivable from its set scores", match_number=match_number
    )


def sets_to_json(sets: Iterable[SetScore]) -> List[dict]:
    return [{"a": s.a, "b": s.b} for s in sets]
