"""
Rebuilds the stored schedule from the schedule document.
"""

import logging
from pathlib import Path
from typing import Union

from .database import DatabaseManager
from .plan import build_plan
from .schedule import Configuration, load_configuration

logger = logging.getLogger(__name__)


async def run_configurator(
    db: DatabaseManager,
    schedule_path: Union[str, Path],
) -> Configuration:
    """
    Load the schedule, expand it and replace the stored years and events.

    All previously entered scores are discarded. Loading errors are raised
    before the database is touched.

    @param db: Database manager
    @param schedule_path: Path to the schedule YAML document
    @return: The configuration that is now live
    @raise ConfigIOError: The schedule file cannot be read
    @raise ConfigParseError: The schedule document is invalid
    @raise StorageError: Writing the plan failed (nothing was changed)
    """
    logger.info("Running configurator with %s", schedule_path)
    configuration = load_configuration(schedule_path)

    plan = build_plan(configuration)
    logger.info(
        "Built plan: %d years, %d events", len(plan.year_plans), plan.event_count()
    )

    await db.apply_plan(plan)
    return configuration
