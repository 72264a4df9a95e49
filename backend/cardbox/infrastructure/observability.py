"""Structured Logging — JSON formatter and one-shot setup.

Invariants:
    - Every JSON line has timestamp, level, logger and message
    - Card and box correlation fields (card_id, box_id, ...) appear when passed via extra=
    - Image bytes are never logged; email addresses may be
    - setup_logging is idempotent: calling it again replaces, not duplicates, its handler

Design Decisions:
    - Called once from the FastAPI lifespan; "text" format for local development
    - httpx request logging held at WARNING: the notifier logs its own outcome
"""

import json
import logging
from datetime import datetime, timezone


CORRELATION_FIELDS = (
    "card_id", "box_id", "reference_code", "origin",
    "error_code", "path", "status", "attempt",
)

_HANDLER_NAME = "cardbox"
_QUIET_LOGGERS = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log.update({
            key: record.__dict__[key]
            for key in CORRELATION_FIELDS
            if record.__dict__.get(key) is not None
        })
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
