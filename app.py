#!/usr/bin/env python3
"""
Sports day scoreboard server.
Loads the schedule, optionally rebuilds the stored plan, and serves the
scoreboard, results, score entry and admin pages.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from sportsday.config import AppConfig
from sportsday.errors import SportsdayError
from sportsday.logs import LogCollector, setup_logging
from sportsday.scoreboard import SportsdaySystem


async def main() -> int:
    """Main function with command line interface."""

    parser = argparse.ArgumentParser(
        description="Sports day scoreboard web server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--settings",
        default=os.getenv("SPORTSDAY_SETTINGS", "sportsday.json"),
        help="Settings file path (env: SPORTSDAY_SETTINGS)",
    )
    parser.add_argument(
        "--schedule",
        default=None,
        help="Schedule YAML file path (overrides settings)",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database file path (overrides settings)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind the web server to (overrides settings)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Web server port (overrides settings)",
    )
    parser.add_argument(
        "--configure",
        action="store_true",
        help="Rebuild the stored schedule from the schedule file (discards all scores)",
    )

    args = parser.parse_args()

    settings_path = Path(args.settings)
    if settings_path.exists() and not settings_path.is_file():
        print(f"Error: {args.settings} exists but is not a file")
        return 1

    config = AppConfig(args.settings)
    for value, path in (
        (args.schedule, ("schedule", "path")),
        (args.db, ("database", "path")),
        (args.host, ("server", "host")),
        (args.port, ("server", "port")),
    ):
        if value is not None:
            config.set(*path, value=value)

    collector = LogCollector(config.get("logging", "max_entries"))
    setup_logging(config.get("logging", "level"), collector)

    system = SportsdaySystem(config, log_collector=collector)

    try:
        await system.init_db()
        await system.load_schedule(configure=True if args.configure else None)
    except SportsdayError as e:
        print(f"Error: {e}")
        return 1

    try:
        await system.run_forever()
    except KeyboardInterrupt:
        print("\nServer interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
