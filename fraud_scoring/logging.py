"""Logging setup shared by the engine, the emitter worker and the scripts."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

# Third-party loggers that only matter at WARNING and above
QUIET_LOGGERS = ("confluent_kafka", "psycopg", "faker")

# Record attributes lifted into JSON output when set through ``extra=``
CONTEXT_FIELDS = ("transaction_id", "user_id", "evaluator", "sink", "decision")

STANDARD_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-18s | %(name)s | %(message)s"


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
    stream: TextIO | None = None,
) -> None:
    """Route all logging to a single handler.

    Evaluators and sinks log from pool and emitter threads, so the standard
    format carries the thread name.

    Parameters
    ----------
    level : str
        Log level name; unknown names fall back to INFO.
    format_type : str
        "standard" or "json".
    stream : TextIO | None
        Destination, stdout by default.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    if format_type == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(STANDARD_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    logging.getLogger("fraud_scoring").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with scoring context when available."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        # logger.info(..., extra={"extra": {...}}) for free-form fields
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            entry.update(extra)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Module logger; a thin alias kept for scripts."""
    return logging.getLogger(name)
