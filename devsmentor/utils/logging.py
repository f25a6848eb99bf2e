"""
Logging setup for DevsMentor.

Deployed services log one JSON object per line; a terminal gets colored
text. Per-request context (subscriber, feature, attempt, provider
status) travels on the record via ``extra`` and is emitted as a nested
"context" object by JSONFormatter.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Tuple

CONTEXT_FIELDS = ("subscriber_id", "feature", "attempt", "status_code")

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Single-line JSON records with an optional "context" object."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = {}
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                context[name] = value
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Text formatter that colors the level name for terminals."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; the file handler sees the same record
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _console_formatter(log_format: str, colored: bool) -> logging.Formatter:
    if log_format == "json":
        return JSONFormatter()
    if colored and sys.stderr.isatty():
        return ColoredFormatter(TEXT_FORMAT, TEXT_DATEFMT)
    return logging.Formatter(TEXT_FORMAT, TEXT_DATEFMT)


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,
    backup_count: int = 5,
    console_enabled: bool = True,
    colored: bool = True,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: Level name, case-insensitive.
        log_format: "json" or "text" for the console handler.
        log_file: Rotating JSON log file; parent directories are created.
        max_bytes: Rotation size for ``log_file``.
        backup_count: Rotated files kept.
        console_enabled: Log to stderr (stdout is reserved for CLI output).
        colored: Color level names when stderr is a terminal.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    root.handlers = []

    if console_enabled:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_console_formatter(log_format, colored))
        root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count
        )
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)


class LoggerAdapter(logging.LoggerAdapter):
    """Adds fixed context to every record; per-call ``extra`` wins."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def create_logger_with_context(
    name: str, context: Dict[str, Any]
) -> LoggerAdapter:
    """
    Logger bound to request context.

    Example:
        log = create_logger_with_context(
            "feature.job_search", {"subscriber_id": "u1", "feature": "job_search"}
        )
        log.warning("Provider rate limited", extra={"attempt": 2})
    """
    return LoggerAdapter(logging.getLogger(name), context)
