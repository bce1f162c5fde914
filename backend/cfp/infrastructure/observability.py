"""Structured Logging — JSON log lines carrying the engine's correlation fields.

Invariants:
    - Every line has ts, level, logger, msg; timestamps come from the record, not the formatter
    - Correlation extras (talk_id, slot_id, error_code, attempt, actor_id, old_state,
      new_state, path) appear only when the call site passed them
    - setup_logging is idempotent: re-running it (tests, reloads) replaces its own handler

Design Decisions:
    - stdlib logging + one Formatter subclass: call sites use logger.info(..., extra={...})
    - UUIDs and enums rendered as strings; numbers and bools kept as JSON scalars
"""

import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "talk_id", "slot_id", "error_code", "attempt",
    "actor_id", "old_state", "new_state", "path",
)

_HANDLER_NAME = "cfp-stream"


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is None:
                continue
            payload[key] = value if isinstance(value, (int, float, bool)) else str(value)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


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
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        ))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    # SQL echo stays off unless explicitly raised
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
