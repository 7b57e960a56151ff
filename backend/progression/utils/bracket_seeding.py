"""
Knockout first-round seeding: bracket-fold placement with same-group avoidance.

Matchups follow standard bracket-fold order so that if chalk holds seed 1
meets seed 2 in the final. Seeds beyond the qualifier count are byes.
First-round pairs of two participants from the same group are repaired by
swapping lower seeds between matches when such a swap exists; pairs that
cannot be repaired are reported as conflicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Seed:
    """Lightweight struct for pairing input."""
    seed: int
    participant_id: int
    group_name: Optional[str] = None


@dataclass
class PairingConflict:
    seed_a: int
    seed_b: int
    group: str
    reason: str


@dataclass
class FirstRound:
    bracket_size: int
    pairs: List[Tuple[Optional[Seed], Optional[Seed]]]  # None = bye
    conflicts: List[PairingConflict]


def next_power_of_two(n: int) -> int:
    size = 1
    while size < n:
        size *= 2
    return size


def bracket_fold_positions(n: int) -> List[int]:
    """Standard bracket-fold positions for *n* entries.

    Returns a flat list of seed numbers in bracket position order.
    Consecutive pairs indicate which seeds meet if chalk holds:
      4-entry  -> [1, 4, 2, 3]       -> (1v4), (2v3)
      8-entry  -> [1, 8, 4, 5, ...]   -> (1v8), (4v5), ...
      16-entry -> [1, 16, 8, 9, ...]   -> (1v16), (8v9), ...
    """
    if n == 2:
        return [1, 2]

    half = bracket_fold_positions(n // 2)

    expanded: List[int] = []
    for s in half:
        expanded.append(s)
        expanded.append(n + 1 - s)

    mid = len(expanded) // 2
    top = expanded[:mid]
    bot = expanded[mid:]
    if len(bot) >= 4:
        bot = bot[:-4] + bot[-2:] + bot[-4:-2]

    return top + bot


def _same_group(a: Optional[Seed], b: Optional[Seed]) -> bool:
    return (
        a is not None
        and b is not None
        and a.group_name is not None
        and a.group_name == b.group_name
    )


def build_first_round(seeds: Sequence[Seed]) -> FirstRound:
    """Place *seeds* (ordered best first) into a power-of-two first round.

    Byes go to the top seeds. Same-group pairs are repaired where a swap of
    the lower seeds with another match removes the conflict in both matches.
    """
    count = len(seeds)
    assert count >= 2, f"need at least 2 seeds, got {count}"

    size = next_power_of_two(count)
    by_seed = {s.seed: s for s in seeds}
    positions = bracket_fold_positions(size)

    pairs: List[Tuple[Optional[Seed], Optional[Seed]]] = []
    for i in range(0, size, 2):
        pairs.append((by_seed.get(positions[i]), by_seed.get(positions[i + 1])))

    for i, (top, low) in enumerate(pairs):
        if not _same_group(top, low):
            continue
        for j, (other_top, other_low) in enumerate(pairs):
            if j == i or other_low is None:
                continue
            if not _same_group(top, other_low) and not _same_group(other_top, low):
                pairs[i] = (top, other_low)
                pairs[j] = (other_top, low)
                break

    conflicts = [
        PairingConflict(
            seed_a=top.seed,
            seed_b=low.seed,
            group=top.group_name or "",
            reason=(
                f"Unavoidable same-group pairing: seed {top.seed} and seed {low.seed} "
                f"both from group '{top.group_name}'"
            ),
        )
        for top, low in pairs
        if _same_group(top, low)
    ]

    return FirstRound(bracket_size=size, pairs=pairs, conflicts=conflicts)
