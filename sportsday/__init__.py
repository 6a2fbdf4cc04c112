"""
Sports Day Scoreboard - schedule, scores and live results for a school sports day.

This package provides:
- Rule-based expansion of a YAML schedule into years and events
- SQLite storage of the schedule and the scores entered on the day
- Web interface with scoreboard, results, score entry and admin console
- Live scoreboard updates over WebSockets
"""

from .config import AppConfig
from .database import DatabaseManager
from .plan import Plan, build_plan
from .schedule import Configuration, load_configuration
from .scoreboard import SportsdaySystem
from .web_handlers import WebHandlers

__version__ = "2.0.0"

__all__ = [
    "AppConfig",
    "Configuration",
    "DatabaseManager",
    "Plan",
    "SportsdaySystem",
    "WebHandlers",
    "build_plan",
    "load_configuration",
]
