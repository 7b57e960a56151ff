"""Advancement: completing a feeder fills downstream slots. Idempotent."""
import pytest

from progression.services.advancement_service import (
    resolve_all_placeholders,
    resolve_placeholder,
)
from progression.services.bracket_generator import CrossingRule, KnockoutConfig, generate_knockout_stage
from progression.services.errors import IncompleteMatchError
from progression.services.records import CategoryFormat, MatchStatus, resolved, winner_of
from progression.services.standings_calculator import compute_category_standings
from tests.factories import by_number, complete, group, make_category, round_robin


@pytest.fixture
def bracket():
    """Group stage 1-6 plus SF1 #7 (1 v 5), SF2 #8 (4 v 2), final #9, 3rd place #10."""
    groups = [group("A", [1, 2, 3]), group("B", [4, 5, 6])]
    matches = round_robin("A", [1, 2, 3], 1) + round_robin("B", [4, 5, 6], 4)
    standings = compute_category_standings(groups, matches)
    plan = generate_knockout_stage(make_category(), standings, KnockoutConfig(), matches)
    return matches + list(plan.matches)


def test_winner_and_loser_fill_final_and_third_place(bracket):
    matches = complete(bracket, 7, "6-3 6-4")
    result = resolve_placeholder(matches, 7)

    assert result.updated_match_numbers == (9, 10)
    final = by_number(result.matches, 9)
    third = by_number(result.matches, 10)
    assert final.side_a == resolved(1)
    assert final.side_b == winner_of(8)
    assert final.status is MatchStatus.PENDING_QUALIFICATION
    assert third.side_a == resolved(5)


def test_both_feeders_schedule_the_match(bracket):
    matches = complete(bracket, 7, "6-3 6-4")
    matches = list(resolve_placeholder(matches, 7).matches)
    matches = complete(matches, 8, "3-6 4-6")
    result = resolve_placeholder(matches, 8)

    final = by_number(result.matches, 9)
    third = by_number(result.matches, 10)
    assert (final.side_a, final.side_b) == (resolved(1), resolved(2))
    assert (third.side_a, third.side_b) == (resolved(5), resolved(4))
    assert final.status is MatchStatus.SCHEDULED
    assert third.status is MatchStatus.SCHEDULED
    assert result.events[0].kind == "placeholders_resolved"


def test_second_call_changes_nothing(bracket):
    matches = complete(bracket, 7, "6-3 6-4")
    once = resolve_placeholder(matches, 7)
    twice = resolve_placeholder(once.matches, 7)
    assert twice.updated_match_numbers == ()
    assert twice.matches == once.matches
    assert twice.events == ()


def test_input_is_not_mutated(bracket):
    matches = complete(bracket, 7, "6-3 6-4")
    resolve_placeholder(matches, 7)
    assert by_number(matches, 9).side_a == winner_of(7)


def test_feeder_must_be_completed(bracket):
    with pytest.raises(ValueError, match="only completed matches"):
        resolve_placeholder(bracket, 7)


def test_unknown_feeder(bracket):
    with pytest.raises(ValueError, match="does not exist"):
        resolve_placeholder(bracket, 99)


def test_completed_feeder_without_winner(bracket):
    matches = complete(bracket, 7, "6-4 4-6")
    with pytest.raises(IncompleteMatchError):
        resolve_placeholder(matches, 7)


def test_bulk_repair(bracket):
    matches = complete(complete(bracket, 7, "6-3 6-4"), 8, "6-1 6-1")
    result = resolve_all_placeholders(matches)
    assert result.updated_match_numbers == (9, 10)
    final = by_number(result.matches, 9)
    assert (final.side_a, final.side_b) == (resolved(1), resolved(4))
    assert resolve_all_placeholders(result.matches).updated_match_numbers == ()


class TestBestAndWorstLoser:
    @pytest.fixture
    def crossed(self):
        plan = generate_knockout_stage(
            make_category(CategoryFormat.CROSSED_PLAYOFFS, number_of_groups=3),
            {},
            KnockoutConfig(),
            crossing=CrossingRule(halves=((1, 2, 3, 4), (5, 6, 7, 8), (9, 10, 11, 12))),
        )
        return list(plan.matches)

    def test_waits_for_both_feeders(self, crossed):
        matches = complete(crossed, 1, "6-4 6-4")
        result = resolve_placeholder(matches, 1)
        sf1 = by_number(result.matches, 4)
        sf2 = by_number(result.matches, 5)
        assert sf1.side_a == resolved(1, 12)
        assert sf2.side_b == crossed[4].side_b
        assert result.updated_match_numbers == (4,)

    def test_loser_with_more_games_goes_to_semifinal(self, crossed):
        # J1 loser took 8 games, J2 loser none
        matches = complete(complete(crossed, 1, "6-4 6-4"), 2, "6-0 6-0")
        matches = list(resolve_placeholder(matches, 1).matches)
        result = resolve_placeholder(matches, 2)

        sf2 = by_number(result.matches, 5)
        fifth = by_number(result.matches, 6)
        assert sf2.side_b == resolved(2, 11)
        assert fifth.side_b == resolved(4, 6)

    def test_equal_losers_fall_back_to_match_number(self, crossed):
        matches = complete(complete(crossed, 1, "6-4 6-4"), 2, "6-4 6-4")
        result = resolve_all_placeholders(matches)
        assert by_number(result.matches, 5).side_b == resolved(2, 11)
        assert by_number(result.matches, 6).side_b == resolved(4, 6)

    def test_games_won_outweighs_game_difference(self, crossed):
        # J1 loser: 5 games at -7; J2 loser: 4 games at -2
        matches = complete(complete(crossed, 1, "6-3 6-2"), 2, "6-4")
        result = resolve_all_placeholders(matches)
        assert by_number(result.matches, 5).side_b == resolved(2, 11)
        assert by_number(result.matches, 6).side_b == resolved(4, 6)

    def test_fewer_games_is_worst_loser(self, crossed):
        # J1 loser: 3 games; J2 loser: 12 games over three sets
        matches = complete(complete(crossed, 1, "6-3 6-0"), 2, "6-4 1-6 6-2")
        result = resolve_all_placeholders(matches)
        assert by_number(result.matches, 5).side_b == resolved(4, 6)
        assert by_number(result.matches, 6).side_b == resolved(2, 11)
