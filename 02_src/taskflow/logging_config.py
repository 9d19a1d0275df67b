"""JSON-lines logging for the TaskFlow service."""

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path

from .config import Settings

# Libraries that log every statement or frame at DEBUG
NOISY_LOGGERS = ("aiosqlite", "websockets", "httpcore")


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Components attach structured fields with ``extra={"context": {...}}``;
    they land under the ``context`` key untouched.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        context = getattr(record, "context", None)
        if context is not None:
            entry["context"] = context
        return json.dumps(entry, default=str)


def build_logging_config(settings: Settings, console: bool = True) -> dict:
    """dictConfig payload: rotating JSON file, optional stdout, uvicorn folded in."""
    handlers = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": settings.log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }

    loggers = {
        # uvicorn installs its own handlers unless log_config=None
        "uvicorn": {"handlers": [], "propagate": True},
        "uvicorn.access": {"handlers": [], "propagate": True},
    }
    for name in NOISY_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JSONFormatter}},
        "handlers": handlers,
        "loggers": loggers,
        "root": {
            "level": settings.log_level.upper(),
            "handlers": list(handlers),
        },
    }


def setup_logging(settings: Settings, console: bool = True) -> None:
    """Install the service's logging configuration."""
    Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings, console=console))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
