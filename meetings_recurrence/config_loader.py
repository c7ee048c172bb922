"""meetings_recurrence.config_loader

Config loader for callers of the recurrence engine.

- Reads YAML (PyYAML) or JSON, chosen by file suffix.
- Environment variables override file values.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.

The engine never loads configuration itself. Callers pass a loaded `Config`
to `delete_calendar_event` for the EXDATE zone and `Config.week_start` to
`format_rule_text` for the weekday order.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("meetings_recurrence.yaml")

# config key -> environment variable
ENV_OVERRIDES = {
    "week_start": "MEETINGS_RECURRENCE_WEEK_START",
    "default_timezone": "MEETINGS_RECURRENCE_DEFAULT_TIMEZONE",
    "log_level": "MEETINGS_RECURRENCE_LOG_LEVEL",
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Typed configuration.

    Fields:
        week_start: first day of the week, 0=Monday..6=Sunday
        default_timezone: IANA zone for new entries and EXDATEs
        log_level: logging level name
    """

    week_start: int = 0
    default_timezone: str = "UTC"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Invalid values fall back to their defaults and log a warning.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        week_start = _coerce_int("week_start", 0)
        if week_start not in range(7):
            logger.warning("week_start %d outside 0..6; using 0 (Monday)", week_start)
            week_start = 0

        default_timezone = str(data.get("default_timezone") or "UTC")
        try:
            ZoneInfo(default_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("default_timezone %r is unknown; using UTC", default_timezone)
            default_timezone = "UTC"

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"
        if log_level not in _LOG_LEVELS:
            logger.warning("log_level %r is not a logging level; using INFO", log_level)
            log_level = "INFO"

        return cls(
            week_start=week_start,
            default_timezone=default_timezone,
            log_level=log_level,
        )


def _load_yaml_or_json(path: Path) -> Any:
    """Load a mapping from a YAML or JSON file; ``.json`` files are read as JSON."""
    text = path.read_text()
    if path.suffix.lower() == ".json":
        return json.loads(text)

    loaded = yaml.safe_load(text)
    # safe_load returns None for empty files
    if loaded is None:
        return {}
    return loaded


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    merged = dict(raw)
    for key, env_var in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            logger.debug("Config %s overridden by %s", key, env_var)
            merged[key] = value
    return merged


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. If not provided the default is
              ./meetings_recurrence.yaml (relative to current working dir).

    Returns:
        Config dataclass instance with values from file and environment.

    Behavior:
    - If file is missing: defaults, overlaid by the environment.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        raw: Any = {}
    else:
        raw = _load_yaml_or_json(p)
        if not isinstance(raw, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        logger.info("Loaded configuration from %s", p)

    cfg = Config.from_dict(_apply_env_overrides(raw))
    logger.debug("Configuration values: %s", cfg)
    return cfg
