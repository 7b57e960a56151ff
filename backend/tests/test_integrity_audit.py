"""Integrity audit: read-only detection of broken tournament data."""
from progression.services.integrity_audit import ParticipantAssignment, audit_tournament
from progression.services.records import MatchStatus, RoundTag, winner_of
from tests.factories import CATEGORY_ID, make_category, make_match, round_robin


def _codes(report):
    return sorted(v.code for v in report.violations)


def test_clean_tournament():
    report = audit_tournament(
        [make_category()],
        [ParticipantAssignment(1, CATEGORY_ID, "A"), ParticipantAssignment(2, CATEGORY_ID, "A")],
        round_robin("A", [1, 2], 1),
    )
    assert report.ok
    assert report.to_dict() == {"ok": True, "violations": []}


def test_unassigned_participant():
    report = audit_tournament(
        [make_category()],
        [ParticipantAssignment(1, CATEGORY_ID, "A"), ParticipantAssignment(2, CATEGORY_ID, None)],
        [],
    )
    assert _codes(report) == ["UNASSIGNED_PARTICIPANT"]
    assert report.violations[0].participant_id == 2


def test_ungrouped_category_needs_no_group():
    report = audit_tournament(
        [make_category(number_of_groups=0)], [ParticipantAssignment(1, CATEGORY_ID, None)], []
    )
    assert report.ok


def test_match_defects():
    matches = [
        make_match(1, 1, 2, "6-0 6-0"),
        make_match(2, 1, winner_of(1), "6-0 6-0", round=RoundTag.SEMIFINAL),
        make_match(3, 1, 2, "6-4 4-6", round=RoundTag.SEMIFINAL),
        make_match(4, 1, 2, status=MatchStatus.SCHEDULED, round=RoundTag.FINAL, category_id=None),
        make_match(5, 1, 2, status=MatchStatus.SCHEDULED, round=RoundTag.FINAL),
        make_match(5, 1, 2, status=MatchStatus.SCHEDULED, round=RoundTag.FINAL),
    ]
    report = audit_tournament([make_category()], [], matches, raw_rounds=[(6, "semi-final")])
    assert not report.ok
    assert _codes(report) == [
        "COMPLETED_WITHOUT_WINNER",
        "COMPLETED_WITH_PLACEHOLDER",
        "DUPLICATE_KNOCKOUT_ROUND",
        "DUPLICATE_MATCH_NUMBER",
        "NULL_CATEGORY_ID",
        "UNKNOWN_ROUND",
    ]
    by_code = {v.code: v for v in report.violations}
    assert by_code["COMPLETED_WITH_PLACEHOLDER"].match_number == 2
    assert by_code["COMPLETED_WITHOUT_WINNER"].match_number == 3
    assert by_code["NULL_CATEGORY_ID"].match_number == 4
    assert by_code["DUPLICATE_MATCH_NUMBER"].match_number == 5
    assert by_code["DUPLICATE_KNOCKOUT_ROUND"].category_id == CATEGORY_ID
    assert by_code["UNKNOWN_ROUND"].match_number == 6


def test_audit_does_not_touch_input():
    matches = [make_match(1, 1, winner_of(9), "6-0 6-0", round=RoundTag.FINAL)]
    snapshot = list(matches)
    audit_tournament([make_category()], [], matches)
    assert matches == snapshot
