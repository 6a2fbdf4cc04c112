"""Tests for score sheet validation and scoreboard totals."""

import pytest

from sportsday.errors import ScoreValidationError
from sportsday.scores import parse_score_sheet, tally_scoreboard


def test_parse_stored_json() -> None:
    assert parse_score_sheet('{"red": 0, "blue": 10}') == {"red": 0, "blue": 10}


def test_parse_converts_select_values_and_fills_missing_forms() -> None:
    sheet = parse_score_sheet({"blue": "8"}, form_ids=["red", "blue"])
    assert sheet == {"red": 0, "blue": 8}
    assert list(sheet) == ["red", "blue"]


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        {"red": "ten"},
        {"red": True},
        {"red": 1.5},
        None,
    ],
)
def test_parse_rejects_invalid_sheets(raw) -> None:
    with pytest.raises(ScoreValidationError):
        parse_score_sheet(raw)


def test_parse_rejects_unknown_forms() -> None:
    with pytest.raises(ScoreValidationError, match="green"):
        parse_score_sheet({"green": 1}, form_ids=["red", "blue"])


def test_parse_checks_allowed_values() -> None:
    assert parse_score_sheet({"red": 10}, allowed_values=[0, 6, 8, 10]) == {"red": 10}
    with pytest.raises(ScoreValidationError, match="not one of"):
        parse_score_sheet({"red": 7}, allowed_values=[0, 6, 8, 10])


def test_tally_scoreboard() -> None:
    events = [
        {"id": "year7-boys-sprint", "year_id": "year7", "scores": '{"red": 10, "blue": 8}'},
        {"id": "year7-girls-sprint", "year_id": "year7", "scores": '{"red": 6, "blue": 10}'},
        {"id": "year8-boys-sprint", "year_id": "year8", "scores": '{"red": 1, "blue": 0}'},
        {"id": "year8-boys-broken", "year_id": "year8", "scores": "{oops"},
    ]

    totals = tally_scoreboard(events, ["red", "blue", "green"])

    assert totals["scores"] == {
        "year7": {"red": 16, "blue": 18},
        "year8": {"red": 1, "blue": 0},
    }
    assert totals["year_totals"] == {"year7": 34, "year8": 1}
    assert totals["form_totals"] == {"red": 17, "blue": 18, "green": 0}
    assert totals["grand_total"] == 35


def test_tally_of_no_events() -> None:
    totals = tally_scoreboard([], ["red"])
    assert totals == {
        "scores": {},
        "year_totals": {},
        "form_totals": {"red": 0},
        "grand_total": 0,
    }
