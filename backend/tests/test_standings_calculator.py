"""Group standings: ordering, tie-breaks, malformed input."""
import pytest

from progression.services.errors import IncompleteMatchError
from progression.services.records import MatchStatus, winner_of
from progression.services.standings_calculator import (
    PointsScheme,
    compute_category_standings,
    compute_standings,
    rank_across_groups,
)
from tests.factories import group, make_match, round_robin


def _order(rows):
    return [r.participant_id for r in rows]


def test_round_robin_ranks_by_points():
    rows = compute_standings(group("A", [1, 2, 3]), round_robin("A", [1, 2, 3], 1))
    assert _order(rows) == [1, 2, 3]
    assert [r.rank for r in rows] == [1, 2, 3]
    top = rows[0]
    assert (top.matches_played, top.matches_won, top.matches_lost) == (2, 2, 0)
    assert (top.sets_won, top.sets_lost, top.games_won, top.games_lost) == (4, 0, 24, 10)
    assert top.points == 2


def test_deterministic_on_identical_input():
    matches = round_robin("A", [4, 2, 9, 7], 1)
    first = compute_standings(group("A", [2, 4, 7, 9]), matches)
    second = compute_standings(group("A", [9, 7, 4, 2]), list(reversed(matches)))
    assert first == second


def test_three_way_tie_skips_head_to_head():
    matches = [
        make_match(1, 2, 1, "6-4 6-4"),
        make_match(2, 1, 3, "6-0 6-0"),
        make_match(3, 3, 2, "6-4 6-4"),
    ]
    rows = compute_standings(group("A", [1, 2, 3]), matches)
    # Circular results: game difference decides
    assert _order(rows) == [1, 2, 3]


def test_head_to_head_breaks_two_way_tie():
    matches = [
        make_match(1, 2, 1, "7-6 7-6"),
        make_match(2, 1, 3, "6-0 6-0"),
        make_match(3, 2, 3, "7-6 7-6"),
        make_match(4, 1, 4, "6-0 6-0"),
        make_match(5, 4, 2, "6-0 6-0"),
        make_match(6, 3, 4, "6-0 6-0"),
    ]
    # 1 and 2 on 2 points each; 1 has the better game difference but 2 won their meeting
    rows = compute_standings(group("A", [1, 2, 3, 4]), matches)
    assert _order(rows)[:2] == [2, 1]


def test_set_difference_then_game_difference_then_id():
    matches = [
        make_match(1, 1, 3, "6-0 6-0"),
        make_match(2, 2, 4, "6-4 6-4"),
        make_match(3, 5, 6, "6-4 6-4"),
    ]
    rows = compute_standings(group("A", [1, 2, 3, 4, 5, 6]), matches)
    # 1 wins with the larger game difference; 2 and 5 are identical -> id order
    assert _order(rows)[:3] == [1, 2, 5]
    assert _order(rows)[3:] == [4, 6, 3]


def test_set_bonus_scheme():
    rows = compute_standings(
        group("A", [1, 2]),
        [make_match(1, 1, 2, "6-3 3-6 6-4")],
        PointsScheme(win=2, loss=1, per_set_won=1),
    )
    assert [(r.participant_id, r.points) for r in rows] == [(1, 4), (2, 2)]


def test_only_completed_matches_count():
    matches = [
        make_match(1, 1, 2, "6-0 6-0"),
        make_match(2, 2, 1, status=MatchStatus.SCHEDULED),
        make_match(3, 2, 1, "6-0 6-0", status=MatchStatus.CANCELLED),
    ]
    rows = compute_standings(group("A", [1, 2]), matches)
    assert rows[0].participant_id == 1
    assert rows[0].matches_played == 1


def test_completed_without_scores_raises():
    with pytest.raises(IncompleteMatchError) as exc:
        compute_standings(group("A", [1, 2]), [make_match(5, 1, 2)])
    assert exc.value.match_number == 5


def test_completed_with_placeholder_raises():
    with pytest.raises(IncompleteMatchError, match="unresolved"):
        compute_standings(group("A", [1, 2]), [make_match(5, 1, winner_of(3), "6-0 6-0")])


def test_doubles_side_credits_both_members():
    rows = compute_standings(group("A", [1, 2, 3, 4]), [make_match(1, (1, 2), (3, 4), "6-1 6-1")])
    by_id = {r.participant_id: r for r in rows}
    assert by_id[1].matches_won == by_id[2].matches_won == 1
    assert by_id[3].matches_lost == by_id[4].matches_lost == 1


def test_category_standings_keep_groups_apart():
    matches = round_robin("A", [1, 2, 3], 1) + round_robin("B", [6, 5, 4], 4)
    standings = compute_category_standings([group("B", [4, 5, 6]), group("A", [1, 2, 3])], matches)
    assert list(standings) == ["A", "B"]
    assert _order(standings["A"]) == [1, 2, 3]
    assert _order(standings["B"]) == [6, 5, 4]
    assert all(r.matches_played == 2 for rows in standings.values() for r in rows)


def test_rank_across_groups_orders_same_position_rows():
    standings = compute_category_standings(
        [group("A", [1, 2, 3]), group("B", [4, 5, 6])],
        round_robin("A", [1, 2, 3], 1) + [
            make_match(4, 4, 5, "6-0 6-0", group="B"),
            make_match(5, 4, 6, "6-0 6-0", group="B"),
            make_match(6, 5, 6, "6-4 6-4", group="B"),
        ],
    )
    thirds = [rows[2] for rows in standings.values()]
    # 3 lost 2-6 3-6 twice (-14 games); 6 lost 0-6 0-6 and 4-6 4-6 (-16 games)
    assert [r.participant_id for r in rank_across_groups(thirds)] == [3, 6]
