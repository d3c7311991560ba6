"""Logging setup for Lead Scout.

Production runs emit one JSON object per line on stderr; development runs
get a compact coloured line. Either way, ``extra={...}`` fields passed to
a logging call are kept and rendered with the record.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import config

ROOT_LOGGER_NAME = "leadscout"

# Attributes every LogRecord carries; anything else came from ``extra``
_RESERVED = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = (
    "urllib3",
    "requests",
    "httpx",
    "httpcore",
    "googlemaps",
    "sqlalchemy.engine",
    "uvicorn.access",
)

_LEVEL_COLORS = {
    logging.DEBUG: "36",
    logging.INFO: "32",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "35",
}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the ``extra={...}`` fields attached to a record.

    Values that JSON cannot encode are replaced by their ``str()``.
    """
    extra: Dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _RESERVED or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        extra[key] = value
    return extra


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log shippers.

    Example output::

        {"timestamp": "...", "level": "INFO", "service": "leadscout",
         "logger": "leadscout.pipeline", "message": "Search finished ...",
         "source": {"file": "pipeline.py", "line": 95, "function": "search"},
         "extra": {"results": 12}}
    """

    def __init__(self, service_name: str = ROOT_LOGGER_NAME, include_extra: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            },
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if self.include_extra:
            extra = _extra_fields(record)
            if extra:
                payload["extra"] = extra
        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message (key=value ...)`` for terminals."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        label = f"{record.levelname:<8}"
        color = _LEVEL_COLORS.get(record.levelno)
        if self.use_colors and color:
            return f"\033[{color}m{label}\033[0m"
        return label

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{clock} {self._level(record)} {record.name}: {record.getMessage()}"

        extra = _extra_fields(record)
        if extra:
            line += " (" + " ".join(f"{key}={value}" for key, value in extra.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: Optional[str] = None,
    structured: Optional[bool] = None,
    service_name: str = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name; defaults to the configured LOG_LEVEL.
        structured: JSON output; defaults to on outside development.
        service_name: ``service`` field of JSON records.

    Returns:
        The ``leadscout`` logger.

    Example:
        >>> logger = setup_logging(level="DEBUG", structured=False)
        >>> logger.info("Search finished", extra={"results": 12})
    """
    if level is None:
        numeric_level = config.get_log_level()
    else:
        numeric_level = logging.getLevelName(level.upper())
        if not isinstance(numeric_level, int):
            numeric_level = logging.INFO
    level_name = logging.getLevelName(numeric_level)

    if structured is None:
        structured = not config.is_development()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        StructuredFormatter(service_name=service_name)
        if structured
        else HumanReadableFormatter()
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)

    _quiet_third_party(numeric_level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.debug("Logging configured", extra={"log_level": level_name, "structured": structured})
    return logger


def _quiet_third_party(level: int) -> None:
    # HTTP client and SQL chatter only shows up when debugging
    third_party = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``leadscout`` namespace.

    Example:
        >>> get_logger("cli").name
        'leadscout.cli'
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
