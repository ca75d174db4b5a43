"""Runtime settings for the API and the command line.

Settings come from an optional YAML file (``BEDFLOW_CONFIG``) with
``BEDFLOW_STORE_PATH`` and ``BEDFLOW_LOG_LEVEL`` taking precedence. Example::

    store_path: /data/beds.json
    log_level: INFO
    history_default_limit: 50
    trend_window_days: 30
    cleaning_period_days: 7
"""

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

import yaml

from bedflow.beds import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from bedflow.cleaning import DEFAULT_PERIOD_DAYS
from bedflow.trends import DEFAULT_TREND_WINDOW_DAYS


@dataclass
class Settings:
    store_path: Optional[str] = None
    log_level: str = "INFO"
    history_default_limit: int = DEFAULT_HISTORY_LIMIT
    trend_window_days: int = DEFAULT_TREND_WINDOW_DAYS
    cleaning_period_days: int = DEFAULT_PERIOD_DAYS

    def __post_init__(self):
        if not 0 < self.history_default_limit <= MAX_HISTORY_LIMIT:
            raise ValueError(
                f"history_default_limit must be between 1 and {MAX_HISTORY_LIMIT}"
            )
        if self.trend_window_days <= 0:
            raise ValueError("trend_window_days must be positive")
        if self.cleaning_period_days <= 0:
            raise ValueError("cleaning_period_days must be positive")
        self.log_level = str(self.log_level).upper()

    @classmethod
    def from_yaml(cls, config_path: str) -> "Settings":
        """Create settings from a YAML file.

        Unknown keys are rejected so that typos do not silently fall back to
        defaults.
        """
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        known = {field.name for field in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ValueError(f"Unknown settings in {config_path}: {sorted(unknown)}")
        return cls(**config)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ

        config_path = environ.get("BEDFLOW_CONFIG")
        settings = cls.from_yaml(config_path) if config_path else cls()

        if environ.get("BEDFLOW_STORE_PATH"):
            settings.store_path = environ["BEDFLOW_STORE_PATH"]
        if environ.get("BEDFLOW_LOG_LEVEL"):
            settings.log_level = environ["BEDFLOW_LOG_LEVEL"].upper()
        return settings
