"""
Central logging configuration for meetings_recurrence.

Installs a colorized console handler for scripts and services that embed the
recurrence engine, and keeps the engine's DEBUG output (rule building,
expansion counts) off unless asked for.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

DEBUG_ENV = "MEETINGS_RECURRENCE_DEBUG"
LOG_LEVEL_ENV = "MEETINGS_RECURRENCE_LOG_LEVEL"

# Readable colorized format:
# HH:MM:SS  LEVEL   logger.name: message
LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

ENGINE_MODULES = [
    "meetings_recurrence",
    "meetings_recurrence.rrule_codec",
    "meetings_recurrence.editor_state",
    "meetings_recurrence.calendar_events",
    "meetings_recurrence.calendar_queries",
    "meetings_recurrence.calendar_edits",
]

# Third-party loggers that are never interesting below WARNING
QUIET_LOGGERS = ["asyncio", "pydantic"]


def _env_debug() -> bool:
    return os.getenv(DEBUG_ENV, "").strip().lower() in ("1", "true", "yes", "on")


def create_console_handler(level: int = logging.NOTSET) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS)
    )
    return handler


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for meetings_recurrence.

    A colorized console handler is added to the root logger only if it has no
    handlers yet, so applications that configure logging themselves keep
    their setup.

    Args:
        debug_mode: Whether to enable debug logging for the engine modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        MEETINGS_RECURRENCE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        MEETINGS_RECURRENCE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv(LOG_LEVEL_ENV, "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    if not root_logger.handlers:
        root_logger.addHandler(create_console_handler())

    logger_config: dict[str, int] = {name: logging.WARNING for name in QUIET_LOGGERS}
    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for meetings_recurrence modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["meetings_recurrence", *QUIET_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
