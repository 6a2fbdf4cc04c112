"""
Expansion of a schedule configuration into a concrete plan.
"""

import json
from dataclasses import dataclass, field
from typing import List

from .schedule import Configuration, ID_SEPARATOR


@dataclass(frozen=True)
class EventPlan:
    id: str
    name: str
    gender_id: str
    filter_key: str
    scores: str


@dataclass
class YearPlan:
    id: str
    name: str
    events: List[EventPlan] = field(default_factory=list)


@dataclass
class Plan:
    year_plans: List[YearPlan] = field(default_factory=list)

    def event_count(self) -> int:
        return sum(len(year_plan.events) for year_plan in self.year_plans)


def event_plan_id(
    year_id: str,
    gender_id: str,
    event_id: str,
) -> str:
    """
    Build the composite id of a scheduled event.

    @param year_id: Year identifier
    @param gender_id: Gender identifier
    @param event_id: Event identifier
    @return: "{year_id}-{gender_id}-{event_id}"
    """
    return ID_SEPARATOR.join((year_id, gender_id, event_id))


def empty_scores(configuration: Configuration) -> str:
    """
    Serialise a zero score for every form, in configuration order.

    @param configuration: Schedule configuration
    @return: JSON object text, "{}" when there are no forms
    """
    return json.dumps({form.id: 0 for form in configuration.forms})


def build_plan(configuration: Configuration) -> Plan:
    """
    Expand the configuration into one event plan per applicable
    (year, event, gender) combination.

    Years are iterated in configuration order; within a year, events in
    configuration order and genders in configuration order for each event.
    The function only reads its input.

    @param configuration: Schedule configuration
    @return: Plan with one YearPlan per configured year
    """
    scores = empty_scores(configuration)
    plan = Plan()

    for year in configuration.years:
        year_plan = YearPlan(id=year.id, name=year.name)

        for event in configuration.events:
            if not configuration.is_applicable_to_year(event, year.id):
                continue
            for gender in configuration.genders:
                if not configuration.is_applicable_to_gender(event, gender):
                    continue
                year_plan.events.append(
                    EventPlan(
                        id=event_plan_id(year.id, gender, event.id),
                        name=event.name,
                        gender_id=gender,
                        filter_key=event.id,
                        scores=scores,
                    )
                )

        plan.year_plans.append(year_plan)

    return plan
