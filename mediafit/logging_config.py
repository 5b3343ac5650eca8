"""
Logging Configuration: Structured logging for compression runs.

One request produces a burst of trial lines (parameter, size, decision),
so every record can carry the request it belongs to. Engine modules pass
``request_id``, ``media_type``, ``rung``, ``param`` and ``size`` through
``extra=``; both formatters pick them up.

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from mediafit.logging_config import setup_logging

    setup_logging()  # Once, before the first compress() call
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

import click

# Extra record attributes carried into log output
CONTEXT_FIELDS = ("request_id", "media_type", "rung", "param", "size")

# Third-party loggers that are chatty at DEBUG
QUIET_LOGGERS = ("PIL",)


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Context fields set on ``record``, skipping ones passed as None."""
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None and value != "":
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    {"ts": "...", "level": "INFO", "logger": "mediafit.engine.search",
     "message": "...", "request_id": "1a2b3c4d", "rung": "720p", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(record_context(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """
    Terminal output, colored when stderr is a TTY.

    12:34:56 INFO    [search     ] 1a2b3c4d (720p) Trial 606: 7975000 bytes ...
    """

    LEVEL_COLORS = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "magenta",
    }

    def __init__(self, color: Optional[bool] = None):
        super().__init__()
        self.color = sys.stderr.isatty() if color is None else color

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = f"{record.levelname:7}"
        if self.color:
            level = click.style(level, fg=self.LEVEL_COLORS.get(record.levelname))

        module = record.name.rsplit(".", 1)[-1][:11]

        context = record_context(record)
        prefix = ""
        if "request_id" in context:
            prefix += f"{context['request_id']} "
        if "rung" in context:
            prefix += f"({context['rung']}) "

        line = f"{stamp} {level} [{module:11}] {prefix}{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name. Defaults to LOG_LEVEL, then INFO.
        format_type: "json" or "text". Defaults to LOG_FORMAT, then text.
        stream: Where to write. Defaults to stderr so stdout stays free
                for --json command output.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    format_name = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()
    numeric_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(numeric_level)
    if format_name == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger(__name__).debug(f"Logging configured: level={level_name}, format={format_name}")
