"""
Tests for knockout first-round seeding: bracket-fold order, byes, same-group repair.
"""

from progression.utils.bracket_seeding import (
    Seed,
    bracket_fold_positions,
    build_first_round,
    next_power_of_two,
)


def _seeds(groups: str) -> list:
    """One seed per character, e.g. "ABAB" -> seed 1 in A, seed 2 in B, ..."""
    return [Seed(seed=i + 1, participant_id=100 + i + 1, group_name=g) for i, g in enumerate(groups)]


def _seed_pairs(result):
    return [
        (top.seed if top else None, low.seed if low else None)
        for top, low in result.pairs
    ]


class TestBracketFoldPositions:
    def test_2_entries(self):
        assert bracket_fold_positions(2) == [1, 2]

    def test_4_entries(self):
        assert bracket_fold_positions(4) == [1, 4, 2, 3]

    def test_8_entries(self):
        assert bracket_fold_positions(8) == [1, 8, 4, 5, 3, 6, 2, 7]

    def test_16_entries(self):
        expected = [1, 16, 8, 9, 4, 13, 5, 12, 3, 14, 6, 11, 7, 10, 2, 15]
        assert bracket_fold_positions(16) == expected

    def test_all_seeds_present(self):
        for n in (2, 4, 8, 16, 32):
            positions = bracket_fold_positions(n)
            assert sorted(positions) == list(range(1, n + 1))


def test_next_power_of_two():
    assert [next_power_of_two(n) for n in (2, 3, 4, 5, 8, 9)] == [2, 4, 4, 8, 8, 16]


class TestFirstRound:
    def test_cross_seeding_four(self):
        # Winners A, B then runners-up A, B: 1A v 2B, 1B v 2A
        result = build_first_round(_seeds("ABAB"))
        assert result.bracket_size == 4
        assert _seed_pairs(result) == [(1, 4), (2, 3)]
        assert result.conflicts == []

    def test_byes_go_to_top_seeds(self):
        result = build_first_round(_seeds("ABCDEF"))
        assert result.bracket_size == 8
        assert _seed_pairs(result) == [(1, None), (4, 5), (3, 6), (2, None)]

    def test_same_group_pair_is_swapped(self):
        # Seeds 3 and 6 both from C in fold order -> repaired by swapping lower seeds
        result = build_first_round(_seeds("ABCABCAB"))
        assert result.conflicts == []
        for top, low in result.pairs:
            assert top.group_name != low.group_name

    def test_unavoidable_conflicts_reported(self):
        result = build_first_round(_seeds("AAAA"))
        assert len(result.conflicts) == 2
        assert "Unavoidable same-group pairing" in result.conflicts[0].reason
