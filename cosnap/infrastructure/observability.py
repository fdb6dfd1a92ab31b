"""Structured Logging — one handler on the root logger, JSON or text.

Invariants:
    - Every record carries timestamp, level, logger and message
    - Lifecycle ids (user, flag, offer, match) and error_code/path ride along when set via extra=
    - True coordinates are never passed as log extras
    - setup_logging is idempotent: a second call replaces the handler it installed

Design Decisions:
    - stdlib logging only; JSON lines for log shippers, text for local runs
    - SQLAlchemy engine chatter stays at WARNING unless LOG_LEVEL=DEBUG
"""

import json
import logging
from datetime import datetime, timezone

STRUCTURED_FIELDS = (
    "user_id", "flag_id", "offer_id", "match_id", "error_code", "path",
)

_HANDLER_NAME = "cosnap"
_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def _structured_extras(record: logging.LogRecord) -> dict:
    return {
        key: str(record.__dict__[key])
        for key in STRUCTURED_FIELDS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_structured_extras(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable lines with the structured ids appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _structured_extras(record)
        if not extras:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in extras.items())
        return f"{line} [{pairs}]"


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install the application handler on the root logger."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    root.setLevel(numeric)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))
    return handler
