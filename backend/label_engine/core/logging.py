"""
Structured JSON logging for the label engine.
Modules call get_logger(__name__) and pass context through `extra={...}`.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "relativeCreated",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "pathname", "filename", "module", "levelno", "levelname",
    "message", "msecs", "thread", "threadName", "process",
    "processName", "taskName",
})

# Identifiers promoted to the front of every line so log search stays cheap.
_ID_KEYS = ("event", "label_id", "version_id", "session_id", "status_code")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _ID_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in entry:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            entry[key] = value

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_initialized = False


def setup_logging(level: str = "INFO") -> None:
    """Install the JSON handler on the root logger. Safe to call more than once."""
    global _initialized
    if _initialized:
        return

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "httpcore", "httpx", "openai", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
