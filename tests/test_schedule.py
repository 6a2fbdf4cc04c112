"""Tests for schedule loading and applicability rules."""

from pathlib import Path

import pytest

from conftest import SCHEDULE_YAML
from sportsday.errors import ConfigIOError, ConfigParseError
from sportsday.schedule import (
    ApplicabilityRule,
    Event,
    is_applicable_to_gender,
    is_applicable_to_year,
    load_configuration,
    parse_configuration,
)


def _event(years: ApplicabilityRule, genders: ApplicabilityRule) -> Event:
    return Event(id="test", name="Test", applicable_years=years, applicable_genders=genders)


def _document() -> dict:
    return {
        "version": "1.0.0",
        "genders": ["boys", "girls"],
        "scores": [{"name": "1st", "value": 10, "default": True}],
        "years": [{"id": "year7", "name": "Year 7"}],
        "forms": [{"id": "form1", "name": "Form 1", "colour": "#ff0000"}],
        "events": [
            {
                "id": "event1",
                "name": "Event 1",
                "applicable_years": {"type": "all"},
                "applicable_genders": {"type": "all"},
            }
        ],
    }


def test_rule_all_and_none() -> None:
    assert ApplicabilityRule("all").applies_to("year7")
    assert ApplicabilityRule("all").applies_to("")
    assert not ApplicabilityRule("none").applies_to("year7")


def test_rule_include_and_exclude() -> None:
    include = ApplicabilityRule("include", ("year7", "year8"))
    exclude = ApplicabilityRule("exclude", ("year7",))

    assert include.applies_to("year7")
    assert include.applies_to("year8")
    assert not include.applies_to("year9")
    assert not exclude.applies_to("year7")
    assert exclude.applies_to("year9")


def test_applicability_helpers_use_their_own_rule() -> None:
    event = _event(
        ApplicabilityRule("include", ("year7",)),
        ApplicabilityRule("exclude", ("girls",)),
    )

    assert is_applicable_to_year(event, "year7")
    assert not is_applicable_to_year(event, "boys")
    assert is_applicable_to_gender(event, "boys")
    assert not is_applicable_to_gender(event, "girls")


def test_load_configuration(schedule_path: Path) -> None:
    config = load_configuration(schedule_path)

    assert config.version == "1.0.0"
    assert config.genders == ("boys", "girls")
    assert [year.id for year in config.years] == ["year7", "year8"]
    assert config.form_ids() == ["red", "blue"]
    assert config.year_name("year8") == "Year 8"
    assert config.score_values() == [0, 1, 6, 8, 10]
    assert config.default_score().name == "Participated"

    shotput = config.events[1]
    assert shotput.applicable_years == ApplicabilityRule("include", ("year8",))
    assert shotput.applicable_genders == ApplicabilityRule("exclude", ("girls",))


def test_missing_file_raises_io_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigIOError):
        load_configuration(tmp_path / "missing.yaml")


def test_invalid_yaml_raises_parse_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("version: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigParseError, match="invalid YAML"):
        load_configuration(path)


def test_empty_document_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    with pytest.raises(ConfigParseError):
        load_configuration(path)


@pytest.mark.parametrize("field", ["version", "genders", "scores", "years", "forms", "events"])
def test_missing_top_level_field_is_rejected(field: str) -> None:
    document = _document()
    del document[field]

    with pytest.raises(ConfigParseError, match=field):
        parse_configuration(document)


def test_missing_nested_field_is_rejected() -> None:
    document = _document()
    del document["forms"][0]["colour"]

    with pytest.raises(ConfigParseError, match="colour"):
        parse_configuration(document)


def test_wrong_type_is_rejected() -> None:
    document = _document()
    document["scores"][0]["value"] = "10"

    with pytest.raises(ConfigParseError, match="integer"):
        parse_configuration(document)


def test_unknown_rule_type_is_rejected() -> None:
    document = _document()
    document["events"][0]["applicable_years"] = {"type": "some"}

    with pytest.raises(ConfigParseError, match="unknown rule type"):
        parse_configuration(document)


def test_include_rule_requires_ids() -> None:
    document = _document()
    document["events"][0]["applicable_genders"] = {"type": "include"}

    with pytest.raises(ConfigParseError, match="ids"):
        parse_configuration(document)


def test_duplicate_ids_are_rejected() -> None:
    document = _document()
    document["years"].append({"id": "year7", "name": "Year 7 again"})

    with pytest.raises(ConfigParseError, match="Duplicate year id"):
        parse_configuration(document)


def test_separator_in_id_is_rejected() -> None:
    document = _document()
    document["events"][0]["id"] = "relay-4x100"

    with pytest.raises(ConfigParseError, match="must not contain"):
        parse_configuration(document)


def test_rule_referencing_unknown_year_is_rejected() -> None:
    document = _document()
    document["events"][0]["applicable_years"] = {"type": "include", "ids": ["year12"]}

    with pytest.raises(ConfigParseError, match="unknown year 'year12'"):
        parse_configuration(document)


def test_sample_schedule_parses_from_text(tmp_path: Path) -> None:
    path = tmp_path / "sample.yml"
    path.write_text(SCHEDULE_YAML, encoding="utf-8")

    assert len(load_configuration(str(path)).events) == 2
