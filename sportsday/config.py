"""
Application settings for the sports day scoreboard.
Supports both JSON file configuration and environment variable overrides.

The event schedule itself lives in a separate YAML document, see schedule.py.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AppConfig:
    """Settings management for the scoreboard server."""

    DEFAULT_CONFIG = {
        "event_name": "Sports Day",
        "server": {
            "host": "0.0.0.0",
            "port": 8080,
        },
        "database": {
            "path": "sportsday.db",
        },
        "schedule": {
            "path": "sportsday.yaml",
            "configure_on_start": False,  # rebuild the schedule (wipes scores) at startup
        },
        "auth": {
            "admin_email": "",
            "login_secret": "",
            "cookie_secure": False,
        },
        "logging": {
            "level": "INFO",
            "max_entries": 500,
        },
        "features": {
            "live_updates": True,
            "sqlite_console": True,
        },
    }

    def __init__(
        self,
        config_path: Optional[str] = "sportsday.json",
    ) -> None:
        """Initialize settings from file, environment variables, or defaults."""
        self.config_path = Path(config_path) if config_path else None
        self.config = self._load_config()
        self._apply_env_overrides()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load settings from the JSON file merged over the defaults.

        A missing or unreadable file leaves the defaults in place.

        @return: Dictionary containing the loaded settings
        """
        config = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path is None or not self.config_path.exists():
            return config

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                loaded_config = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(
                "Error loading settings from %s: %s; using defaults", self.config_path, e
            )
            return config

        if not isinstance(loaded_config, dict):
            logger.warning("Settings file %s is not an object; using defaults", self.config_path)
            return config

        self._deep_merge(config, loaded_config)
        return config

    def _deep_merge(
        self,
        base_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
    ) -> None:
        """
        Recursively merge dictionaries.

        @param base_dict: Base dictionary to merge into
        @param update_dict: Dictionary with updates to merge
        """
        for key, value in update_dict.items():
            if (
                key in base_dict
                and isinstance(base_dict[key], dict)
                and isinstance(value, dict)
            ):
                self._deep_merge(base_dict[key], value)
            else:
                base_dict[key] = value

    def _apply_env_overrides(self) -> None:
        """
        Apply environment variable overrides to settings.

        Environment variables follow the pattern SPORTSDAY_SECTION_KEY
        (e.g. SPORTSDAY_DB_PATH, SPORTSDAY_LOG_LEVEL).
        """
        env_mappings = {
            "SPORTSDAY_EVENT_NAME": ("event_name",),
            "SPORTSDAY_HOST": ("server", "host"),
            "SPORTSDAY_PORT": ("server", "port"),
            "SPORTSDAY_DB_PATH": ("database", "path"),
            "SPORTSDAY_SCHEDULE_PATH": ("schedule", "path"),
            "SPORTSDAY_CONFIGURE_ON_START": ("schedule", "configure_on_start"),
            "SPORTSDAY_ADMIN_EMAIL": ("auth", "admin_email"),
            "SPORTSDAY_LOGIN_SECRET": ("auth", "login_secret"),
            "SPORTSDAY_COOKIE_SECURE": ("auth", "cookie_secure"),
            "SPORTSDAY_LOG_LEVEL": ("logging", "level"),
            "SPORTSDAY_LOG_MAX_ENTRIES": ("logging", "max_entries"),
            "SPORTSDAY_LIVE_UPDATES": ("features", "live_updates"),
            "SPORTSDAY_SQLITE_CONSOLE": ("features", "sqlite_console"),
        }
        # Free-text values must not be coerced to bool/int
        raw_strings = {"SPORTSDAY_LOGIN_SECRET", "SPORTSDAY_EVENT_NAME", "SPORTSDAY_ADMIN_EMAIL"}

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                if env_var in raw_strings:
                    self._set_nested_config(config_path, env_value)
                else:
                    self._set_nested_config(config_path, self._convert_env_value(env_value))

    def _convert_env_value(self, value: str) -> Any:
        """
        Convert environment variable string to appropriate type.

        @param value: String value from environment variable
        @return: Converted value (bool, int, or string)
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value

    def _set_nested_config(self, path: tuple, value: Any) -> None:
        """
        Set a nested settings value using a path tuple.

        @param path: Tuple representing the nested path (e.g., ("server", "port"))
        @param value: Value to set
        """
        current = self.config
        for key in path[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _validate_config(self) -> None:
        """
        Validate settings values.

        Invalid values are replaced with their defaults and a warning is logged.
        """
        port = self.get("server", "port")
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            logger.warning("Invalid server port %r, using 8080", port)
            self.config["server"]["port"] = 8080

        level = str(self.get("logging", "level")).upper()
        if level not in LOG_LEVELS:
            logger.warning("Invalid log level %r, using INFO", level)
            level = "INFO"
        self.config["logging"]["level"] = level

        max_entries = self.get("logging", "max_entries")
        if isinstance(max_entries, bool) or not isinstance(max_entries, int) or max_entries <= 0:
            logger.warning("Invalid logging.max_entries, using 500")
            self.config["logging"]["max_entries"] = 500

        for section, key in (
            ("database", "path"),
            ("schedule", "path"),
        ):
            value = self.get(section, key)
            if not isinstance(value, str) or not value:
                default = self.DEFAULT_CONFIG[section][key]
                logger.warning("Invalid %s.%s, using %s", section, key, default)
                self.config[section][key] = default

    def get(
        self,
        *keys: str,
    ) -> Any:
        """
        Get nested settings value.

        @param keys: Variable arguments representing nested keys to traverse
        @return: Settings value at the specified path, None if not found
        """
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return None
        return value

    def set(
        self,
        *path: str,
        value: Any,
    ) -> None:
        """
        Override a nested settings value (used for command line arguments).

        @param path: Keys leading to the value
        @param value: New value
        """
        self._set_nested_config(path, value)

    def is_feature_enabled(
        self,
        feature_name: str,
    ) -> bool:
        """
        Check if a feature is enabled.

        @param feature_name: Name of the feature to check
        @return: True if feature is enabled, False otherwise
        """
        return self.get("features", feature_name) is True
