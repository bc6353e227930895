"""Structured logging: JSON lines in production, plain text for local runs."""

import json
import logging
from datetime import datetime, timezone


_EXTRA_FIELDS = (
    "conversation_id", "message_id", "user_id", "error_code", "path", "deleted",
)


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install a single stream handler on the root logger."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    root = logging.getLogger()
    # lifespan can run more than once per process (tests)
    for existing in list(root.handlers):
        if getattr(existing, "_rr_messaging", False):
            root.removeHandler(existing)
    handler._rr_messaging = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
