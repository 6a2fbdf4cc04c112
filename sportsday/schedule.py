"""
Schedule configuration model for the sports day.

The schedule is described in a YAML document listing genders, score tiers,
years, forms and events. Each event carries two applicability rules that
decide which years and which genders it is run for.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigIOError, ConfigParseError

logger = logging.getLogger(__name__)

RULE_ALL = "all"
RULE_NONE = "none"
RULE_INCLUDE = "include"
RULE_EXCLUDE = "exclude"
RULE_TYPES = (RULE_ALL, RULE_NONE, RULE_INCLUDE, RULE_EXCLUDE)

ID_SEPARATOR = "-"


@dataclass(frozen=True)
class ApplicabilityRule:
    """All / none / include-list / exclude-list policy."""

    type: str
    ids: Tuple[str, ...] = ()

    def applies_to(
        self,
        target_id: str,
    ) -> bool:
        """
        Check whether the rule selects the given id.

        @param target_id: Year or gender id to test
        @return: True if the rule applies to the id
        """
        if self.type == RULE_ALL:
            return True
        if self.type == RULE_NONE:
            return False
        if self.type == RULE_INCLUDE:
            return target_id in self.ids
        return target_id not in self.ids


@dataclass(frozen=True)
class ScoreTier:
    name: str
    value: int
    default: bool


@dataclass(frozen=True)
class Year:
    id: str
    name: str


@dataclass(frozen=True)
class Form:
    id: str
    name: str
    colour: str


@dataclass(frozen=True)
class Event:
    id: str
    name: str
    applicable_years: ApplicabilityRule
    applicable_genders: ApplicabilityRule


@dataclass(frozen=True)
class Configuration:
    """Immutable schedule definition loaded from the YAML document."""

    version: str
    genders: Tuple[str, ...] = ()
    scores: Tuple[ScoreTier, ...] = ()
    years: Tuple[Year, ...] = ()
    forms: Tuple[Form, ...] = ()
    events: Tuple[Event, ...] = ()

    def is_applicable_to_year(
        self,
        event: Event,
        year_id: str,
    ) -> bool:
        return is_applicable_to_year(event, year_id)

    def is_applicable_to_gender(
        self,
        event: Event,
        gender_id: str,
    ) -> bool:
        return is_applicable_to_gender(event, gender_id)

    def year_name(
        self,
        year_id: str,
    ) -> str:
        """
        Look up a year's display name.

        @param year_id: Year identifier
        @return: Display name, or the id itself when the year is unknown
        """
        for year in self.years:
            if year.id == year_id:
                return year.name
        return year_id

    def form_ids(self) -> List[str]:
        return [form.id for form in self.forms]

    def score_values(self) -> List[int]:
        """
        Get the points a form may be awarded for one event.

        @return: Sorted list of distinct tier values, always including 0
        """
        return sorted({0, *(tier.value for tier in self.scores)})

    def default_score(self) -> Optional[ScoreTier]:
        for tier in self.scores:
            if tier.default:
                return tier
        return None


def is_applicable_to_year(
    event: Event,
    year_id: str,
) -> bool:
    """
    Evaluate an event's year rule.

    @param event: Event whose rule is evaluated
    @param year_id: Year identifier to test
    @return: True if the event runs for the year
    """
    return event.applicable_years.applies_to(year_id)


def is_applicable_to_gender(
    event: Event,
    gender_id: str,
) -> bool:
    """
    Evaluate an event's gender rule.

    @param event: Event whose rule is evaluated
    @param gender_id: Gender identifier to test
    @return: True if the event runs for the gender
    """
    return event.applicable_genders.applies_to(gender_id)


def load_configuration(path: Union[str, Path]) -> Configuration:
    """
    Load and validate the schedule YAML file.

    @param path: Path to the schedule document
    @return: Validated Configuration
    @raise ConfigIOError: The file cannot be read
    @raise ConfigParseError: The document is invalid
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigIOError(str(path), e) from e

    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"{path}: invalid YAML: {e}") from e

    configuration = parse_configuration(document)
    logger.info(
        "Loaded schedule %s (version %s): %d years, %d genders, %d forms, %d events",
        path,
        configuration.version,
        len(configuration.years),
        len(configuration.genders),
        len(configuration.forms),
        len(configuration.events),
    )
    return configuration


def parse_configuration(document: Any) -> Configuration:
    """
    Validate a decoded schedule document.

    Every field is required; nothing is defaulted. Duplicate ids, ids that
    contain the composite id separator and rule ids that reference unknown
    years or genders are rejected.

    @param document: Mapping decoded from YAML or JSON
    @return: Validated Configuration
    @raise ConfigParseError: The document is invalid
    """
    root = _require_mapping(document, "document")

    version = _require_str(root, "version", "document")
    genders = tuple(
        _require_item_str(value, f"genders[{i}]")
        for i, value in enumerate(_require_list(root, "genders", "document"))
    )

    scores = []
    for i, raw in enumerate(_require_list(root, "scores", "document")):
        where = f"scores[{i}]"
        item = _require_mapping(raw, where)
        scores.append(
            ScoreTier(
                name=_require_str(item, "name", where),
                value=_require_int(item, "value", where),
                default=_require_bool(item, "default", where),
            )
        )

    years = []
    for i, raw in enumerate(_require_list(root, "years", "document")):
        where = f"years[{i}]"
        item = _require_mapping(raw, where)
        years.append(
            Year(id=_require_str(item, "id", where), name=_require_str(item, "name", where))
        )

    forms = []
    for i, raw in enumerate(_require_list(root, "forms", "document")):
        where = f"forms[{i}]"
        item = _require_mapping(raw, where)
        forms.append(
            Form(
                id=_require_str(item, "id", where),
                name=_require_str(item, "name", where),
                colour=_require_str(item, "colour", where),
            )
        )

    events = []
    for i, raw in enumerate(_require_list(root, "events", "document")):
        where = f"events[{i}]"
        item = _require_mapping(raw, where)
        events.append(
            Event(
                id=_require_str(item, "id", where),
                name=_require_str(item, "name", where),
                applicable_years=_parse_rule(item, "applicable_years", where),
                applicable_genders=_parse_rule(item, "applicable_genders", where),
            )
        )

    year_ids = [year.id for year in years]
    _check_ids(year_ids, "year", separator=True)
    _check_ids(list(genders), "gender", separator=True)
    _check_ids([form.id for form in forms], "form", separator=False)
    _check_ids([event.id for event in events], "event", separator=True)

    for event in events:
        _check_rule_references(event.applicable_years, year_ids, event.id, "year")
        _check_rule_references(event.applicable_genders, genders, event.id, "gender")

    return Configuration(
        version=version,
        genders=genders,
        scores=tuple(scores),
        years=tuple(years),
        forms=tuple(forms),
        events=tuple(events),
    )


def _parse_rule(
    item: Dict[str, Any],
    key: str,
    where: str,
) -> ApplicabilityRule:
    location = f"{where}.{key}"
    raw = _require_mapping(item.get(key), location)
    rule_type = _require_str(raw, "type", location)

    if rule_type not in RULE_TYPES:
        raise ConfigParseError(
            f"{location}: unknown rule type '{rule_type}' "
            f"(expected one of {', '.join(RULE_TYPES)})"
        )

    if rule_type in (RULE_ALL, RULE_NONE):
        return ApplicabilityRule(type=rule_type)

    ids = tuple(
        _require_item_str(value, f"{location}.ids[{i}]")
        for i, value in enumerate(_require_list(raw, "ids", location))
    )
    return ApplicabilityRule(type=rule_type, ids=ids)


def _check_ids(
    ids: List[str],
    kind: str,
    separator: bool,
) -> None:
    seen = set()
    for identifier in ids:
        if not identifier:
            raise ConfigParseError(f"Empty {kind} id")
        if identifier in seen:
            raise ConfigParseError(f"Duplicate {kind} id '{identifier}'")
        if separator and ID_SEPARATOR in identifier:
            raise ConfigParseError(
                f"The {kind} id '{identifier}' must not contain '{ID_SEPARATOR}'"
            )
        seen.add(identifier)


def _check_rule_references(
    rule: ApplicabilityRule,
    known_ids: Any,
    event_id: str,
    kind: str,
) -> None:
    for identifier in rule.ids:
        if identifier not in known_ids:
            raise ConfigParseError(
                f"Event '{event_id}' references unknown {kind} '{identifier}'"
            )


def _require_mapping(
    value: Any,
    where: str,
) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigParseError(f"{where}: expected a mapping")
    return value


def _require_list(
    item: Dict[str, Any],
    key: str,
    where: str,
) -> List[Any]:
    if key not in item:
        raise ConfigParseError(f"{where}: missing required field '{key}'")
    value = item[key]
    if not isinstance(value, list):
        raise ConfigParseError(f"{where}.{key}: expected a list")
    return value


def _require_str(
    item: Dict[str, Any],
    key: str,
    where: str,
) -> str:
    if key not in item:
        raise ConfigParseError(f"{where}: missing required field '{key}'")
    return _require_item_str(item[key], f"{where}.{key}")


def _require_item_str(
    value: Any,
    where: str,
) -> str:
    if not isinstance(value, str):
        raise ConfigParseError(f"{where}: expected a string")
    return value


def _require_int(
    item: Dict[str, Any],
    key: str,
    where: str,
) -> int:
    if key not in item:
        raise ConfigParseError(f"{where}: missing required field '{key}'")
    value = item[key]
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigParseError(f"{where}.{key}: expected an integer")
    return value


def _require_bool(
    item: Dict[str, Any],
    key: str,
    where: str,
) -> bool:
    if key not in item:
        raise ConfigParseError(f"{where}: missing required field '{key}'")
    value = item[key]
    if not isinstance(value, bool):
        raise ConfigParseError(f"{where}.{key}: expected a boolean")
    return value
