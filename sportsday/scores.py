"""
Score sheets and scoreboard totals.

A score sheet maps form ids to integer points for one scheduled event. It
is stored as a JSON object in the events table.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import ScoreValidationError

logger = logging.getLogger(__name__)

ScoreSheet = Dict[str, int]


def parse_score_sheet(
    raw: Any,
    form_ids: Optional[Iterable[str]] = None,
    allowed_values: Optional[Iterable[int]] = None,
) -> ScoreSheet:
    """
    Validate a score sheet.

    Accepts either the JSON text stored in the database or an already
    decoded mapping. Integer-like strings (as sent by HTML selects) are
    converted. When form ids are given, unknown forms are rejected and
    missing forms are filled with 0, in form order.

    @param raw: JSON text or mapping of form id to score
    @param form_ids: Known form ids, or None to skip the form check
    @param allowed_values: Permitted point values, or None to allow any integer
    @return: Mapping of form id to integer score
    @raise ScoreValidationError: The sheet is not a valid mapping
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ScoreValidationError(f"Scores are not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ScoreValidationError("Scores must be an object mapping form id to score")

    allowed = set(allowed_values) if allowed_values is not None else None
    sheet: ScoreSheet = {}

    for form_id, value in raw.items():
        if not isinstance(form_id, str):
            raise ScoreValidationError(f"Invalid form id {form_id!r}")
        score = _coerce_score(form_id, value)
        if allowed is not None and score not in allowed:
            raise ScoreValidationError(
                f"Score {score} for form '{form_id}' is not one of {sorted(allowed)}"
            )
        sheet[form_id] = score

    if form_ids is None:
        return sheet

    known = list(form_ids)
    unknown = [form_id for form_id in sheet if form_id not in known]
    if unknown:
        raise ScoreValidationError(f"Unknown form ids: {', '.join(unknown)}")

    return {form_id: sheet.get(form_id, 0) for form_id in known}


def dump_score_sheet(sheet: ScoreSheet) -> str:
    return json.dumps(sheet)


def _coerce_score(
    form_id: str,
    value: Any,
) -> int:
    if isinstance(value, bool):
        raise ScoreValidationError(f"Score for form '{form_id}' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ScoreValidationError(f"Score for form '{form_id}' must be an integer")


def tally_scoreboard(
    events: Iterable[Dict[str, Any]],
    form_ids: List[str],
) -> Dict[str, Any]:
    """
    Sum event score sheets into scoreboard totals.

    @param events: Event rows with "id", "year_id" and "scores" keys
    @param form_ids: Configured form ids, used for the per-form totals
    @return: Dictionary with "scores" (year -> form -> points),
             "year_totals", "form_totals" and "grand_total"
    """
    year_form_scores: Dict[str, Dict[str, int]] = {}

    for event in events:
        try:
            sheet = parse_score_sheet(event["scores"])
        except ScoreValidationError as e:
            logger.warning("Skipping scores of event %s: %s", event["id"], e)
            continue

        year_scores = year_form_scores.setdefault(event["year_id"], {})
        for form_id, score in sheet.items():
            year_scores[form_id] = year_scores.get(form_id, 0) + score

    year_totals = {
        year_id: sum(form_scores.values())
        for year_id, form_scores in year_form_scores.items()
    }

    form_totals = {}
    for form_id in form_ids:
        form_totals[form_id] = sum(
            form_scores.get(form_id, 0) for form_scores in year_form_scores.values()
        )

    return {
        "scores": year_form_scores,
        "year_totals": year_totals,
        "form_totals": form_totals,
        "grand_total": sum(form_totals.values()),
    }
