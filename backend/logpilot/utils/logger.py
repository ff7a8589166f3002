"""
Structured JSON logging.

Every line written to stdout is one JSON object. Context travels through the
standard ``extra=`` mapping:

    logger = get_logger(__name__)
    logger.info("Query complete", extra={"collection": "/aws/app", "action": "query_complete"})
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# Optional record attributes copied into the payload when present
CONTEXT_FIELDS = (
    "turn_id",
    "collection",
    "tool",
    "agent_name",
    "action",
    "tokens",
    "duration_ms",
    "extra",
)

_REDACT_MARKERS = ("token", "secret", "password", "key")
_MASK = "***"


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger, attaching the JSON stdout handler on first use."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(_level_from_env())
    logger.propagate = False
    return logger


def redact(params: Any) -> Any:
    """Mask credential-looking values, nested dicts and lists included."""
    if isinstance(params, dict):
        return {
            k: _MASK if any(m in str(k).lower() for m in _REDACT_MARKERS) else redact(v)
            for k, v in params.items()
        }
    if isinstance(params, list):
        return [redact(v) for v in params]
    return params
