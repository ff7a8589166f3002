"""Record normalization: raw log line -> LogRecord.

Strategies are tried in order; the first one that accepts the line wins.

1. JsonObjectStrategy: the line is a JSON object. Fields are read from
   well-known keys and the whole object becomes ``metadata``.
2. HeuristicTextStrategy: anything else. Level, status code and request id
   are scraped from the text.
"""

import json
import math
import random
import re
import time
from datetime import datetime, timezone
from typing import Any, Optional

from logpilot.models.schemas import (
    LOG_LEVELS, MAX_MESSAGE_LENGTH, TRUNCATION_MARKER, LogRecord,
)

# Checked in this order; first substring hit wins.
TEXT_LEVEL_KEYWORDS = (
    ("error", "ERROR"),
    ("warn", "WARN"),
    ("debug", "DEBUG"),
)

LEVEL_ALIASES = {"WARNING": "WARN"}

STATUS_CODE_PATTERN = re.compile(r"\b([45]\d{2})\b")
REQUEST_ID_PATTERN = re.compile(r"(?:request|req|trace)[_-]?id[:\s]+([a-zA-Z0-9-]+)", re.IGNORECASE)


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant: {name}")


def _first_number(data: dict, *keys: str) -> Optional[float]:
    for key in keys:
        val = data.get(key)
        if isinstance(val, (int, float)) and not isinstance(val, bool):
            if isinstance(val, float) and not math.isfinite(val):
                continue
            return val
    return None


def _first_string(data: dict, *keys: str) -> Optional[str]:
    for key in keys:
        val = data.get(key)
        if isinstance(val, str):
            return val
    return None


def _coerce_level(value: Any) -> str:
    if not isinstance(value, str):
        return "INFO"
    upper = value.strip().upper()
    upper = LEVEL_ALIASES.get(upper, upper)
    return upper if upper in LOG_LEVELS else "INFO"


class JsonObjectStrategy:
    name = "json"

    def apply(self, message: str, collection_name: Optional[str]) -> Optional[dict]:
        try:
            parsed = json.loads(message, parse_constant=_reject_constant)
        except (ValueError, TypeError, RecursionError):
            return None
        if not isinstance(parsed, dict):
            return None

        level_value = None
        for key in ("level", "severity", "logLevel"):
            if parsed.get(key):
                level_value = parsed[key]
                break

        status = _first_number(parsed, "statusCode", "status")
        return {
            "metadata": {**parsed, "logGroupName": collection_name},
            "level": _coerce_level(level_value),
            "status_code": int(status) if status is not None else None,
            "request_id": _first_string(parsed, "requestId", "traceId"),
            "duration": _first_number(parsed, "duration", "responseTime"),
        }


class HeuristicTextStrategy:
    name = "heuristic"

    def classify_level(self, message: str) -> str:
        lowered = message.lower()
        for keyword, level in TEXT_LEVEL_KEYWORDS:
            if keyword in lowered:
                return level
        return "INFO"

    def extract_status_code(self, message: str) -> Optional[int]:
        m = STATUS_CODE_PATTERN.search(message)
        return int(m.group(1)) if m else None

    def extract_request_id(self, message: str) -> Optional[str]:
        m = REQUEST_ID_PATTERN.search(message)
        return m.group(1) if m else None

    def apply(self, message: str, collection_name: Optional[str]) -> dict:
        return {
            "metadata": {"logGroupName": collection_name},
            "level": self.classify_level(message),
            "status_code": self.extract_status_code(message),
            "request_id": self.extract_request_id(message),
            "duration": None,
        }


class RecordNormalizer:
    """Turns raw store events into LogRecords. Never raises."""

    def __init__(self, strategies: list | None = None):
        self._strategies = strategies or [JsonObjectStrategy(), HeuristicTextStrategy()]

    @staticmethod
    def truncate(message: str) -> str:
        if len(message) > MAX_MESSAGE_LENGTH:
            return message[:MAX_MESSAGE_LENGTH] + TRUNCATION_MARKER
        return message

    @staticmethod
    def _timestamp(raw_timestamp_millis: Optional[float]) -> str:
        if raw_timestamp_millis is not None:
            try:
                return datetime.fromtimestamp(raw_timestamp_millis / 1000, tz=timezone.utc).isoformat()
            except (ValueError, TypeError, OverflowError, OSError):
                pass
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _synthesize_id() -> str:
        return f"event-{int(time.time() * 1000)}-{random.random()}"

    def normalize(
        self,
        raw_message: str,
        raw_timestamp_millis: Optional[float] = None,
        raw_id: Optional[str] = None,
        collection_name: Optional[str] = None,
    ) -> LogRecord:
        message = raw_message if isinstance(raw_message, str) else str(raw_message or "")

        fields = None
        for strategy in self._strategies:
            fields = strategy.apply(message, collection_name)
            if fields is not None:
                break
        if fields is None:
            fields = {"metadata": {"logGroupName": collection_name}, "level": "INFO"}

        return LogRecord(
            id=raw_id or self._synthesize_id(),
            timestamp=self._timestamp(raw_timestamp_millis),
            message=self.truncate(message),
            collection_name=collection_name,
            **fields,
        )

    def normalize_batch(self, events: list[dict], collection_name: Optional[str] = None) -> list[LogRecord]:
        """Normalize raw store events shaped like ``{message, timestamp, eventId}``."""
        return [
            self.normalize(e.get("message", ""), e.get("timestamp"), e.get("eventId"), collection_name)
            for e in events
        ]


_default_normalizer = RecordNormalizer()


def normalize(
    raw_message: str,
    raw_timestamp_millis: Optional[float] = None,
    raw_id: Optional[str] = None,
    collection_name: Optional[str] = None,
) -> LogRecord:
    return _default_normalizer.normalize(raw_message, raw_timestamp_millis, raw_id, collection_name)
