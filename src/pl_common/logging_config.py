"""Process-wide logging setup.

Called once from the application lifespan. Library code never configures
logging itself; it only asks for ``logging.getLogger(__name__)``.
"""

import json
import logging
import logging.config
from typing import Any

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, exception chain included as text."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "info", fmt: str = "console") -> None:
    """Install the root handler. ``fmt`` is "console" or "json"."""
    if level.lower() not in _LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    if fmt not in ("console", "json"):
        raise ValueError(f"Unknown log format: {fmt}")

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": fmt,
                },
            },
            "root": {"level": _LEVELS[level.lower()], "handlers": ["stdout"]},
            # SQL echo is controlled by DEBUG, keep the engine logger quiet otherwise
            "loggers": {"sqlalchemy.engine": {"level": logging.WARNING}},
        }
    )
