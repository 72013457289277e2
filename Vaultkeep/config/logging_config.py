"""Logging setup for Vaultkeep.

Provides a JSON formatter for machine consumption and a coloured text
formatter for terminals, plus an optional rotating log file.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from typing import Optional

from .settings import LoggingConfig

ROOT_LOGGER_NAME = "VAULTKEEP"


class JSONFormatter(logging.Formatter):
    """Formats logs as JSON for easier parsing."""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict)


class StandardFormatter(logging.Formatter):
    """Standard text formatter with color support."""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[41m",   # Red background
    }
    RESET = "\033[0m"

    def __init__(self, use_color: Optional[bool] = None):
        super().__init__()
        self.use_color = sys.stderr.isatty() if use_color is None else use_color

    def format(self, record: logging.LogRecord) -> str:
        if self.use_color:
            color = self.COLORS.get(record.levelname, "")
            reset = self.RESET
        else:
            color = reset = ""

        timestamp = self.formatTime(record)
        level = f"{color}{record.levelname:8s}{reset}"
        result = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "standard",
    log_file: Optional[str] = None,
    component_levels: Optional[dict] = None,
) -> logging.Logger:
    """Set up the ``VAULTKEEP`` logger hierarchy.

    Only the package logger is configured so that an embedding CLI or API
    process keeps control of the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format style ("standard" or "json")
        log_file: Optional path to a rotating log file
        component_levels: Mapping of logger names to levels, e.g.
                          {"VAULTKEEP.Cleanup": "DEBUG"}

    Returns:
        The configured package logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.setLevel(level)
    package_logger.propagate = False

    if log_format.lower() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = StandardFormatter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10_000_000,  # 10MB
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter() if log_format.lower() == "json" else StandardFormatter(use_color=False))
            package_logger.addHandler(file_handler)
        except OSError as e:
            package_logger.warning(f"Failed to set up file logging at {log_file}: {e}")

    if component_levels:
        for component, component_level in component_levels.items():
            logging.getLogger(component).setLevel(getattr(logging, component_level.upper(), logging.INFO))

    package_logger.debug(f"Logging initialized: level={log_level}, format={log_format}")
    return package_logger


def setup_logging_from_config(config: LoggingConfig) -> logging.Logger:
    """Apply a LoggingConfig section."""
    return setup_logging(log_level=config.level, log_format=config.format, log_file=config.file_path)


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the package hierarchy (``VAULTKEEP.<name>``)."""
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = [
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    "JSONFormatter",
    "StandardFormatter",
    "ROOT_LOGGER_NAME",
]
