"""Query service: paginated fetch, normalization, post-filters and aggregation."""

import json
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from logpilot.agents.log_processing import RecordNormalizer
from logpilot.config import AppConfig, ConfigurationError
from logpilot.models.schemas import ErrorPattern, LogLevel, LogRecord, TimeRange
from logpilot.stores.base import LogStoreClient
from logpilot.utils.logger import get_logger

logger = get_logger(__name__)

ERROR_PATTERN_TOKENS = 3


class QueryFailure(Exception):
    """The store could not answer a query. Carries the original message."""

    def __init__(self, collection_name: str, message: str):
        super().__init__(f"Failed to query {collection_name}: {message}")
        self.collection_name = collection_name
        self.original_message = message


class FieldFilters(BaseModel):
    """Client-side filters applied after normalization."""

    model_config = {"populate_by_name": True}

    level: Optional[LogLevel] = None
    status_code: Optional[int] = None

    def is_empty(self) -> bool:
        return self.level is None and self.status_code is None

    def matches(self, record: LogRecord) -> bool:
        if self.level is not None and record.level != self.level:
            return False
        if self.status_code is not None and record.status_code != self.status_code:
            return False
        return True


class QueryService:
    """Runs queries against a LogStoreClient and returns normalized records."""

    def __init__(self, store: LogStoreClient, config: AppConfig, normalizer: RecordNormalizer | None = None):
        self._store = store
        self._config = config
        self._normalizer = normalizer or RecordNormalizer()

    def default_time_range(self, hours: float | None = None) -> TimeRange:
        now = datetime.now(timezone.utc)
        window = hours if hours is not None else self._config.default_time_range_hours
        return TimeRange(start=now - timedelta(hours=window), end=now)

    async def query(
        self,
        collection_name: Optional[str] = None,
        time_range: Optional[TimeRange] = None,
        filter_expression: Optional[str] = None,
        field_filters: Optional[FieldFilters] = None,
    ) -> list[LogRecord]:
        """Fetch every record in the window, following continuation tokens to the end."""
        target = collection_name or self._config.default_collection
        if not target:
            raise ConfigurationError(
                "Collection name not specified. Set AWS_LOG_GROUP_NAME or pass a collection name"
            )
        window = time_range or self.default_time_range()

        records: list[LogRecord] = []
        token: Optional[str] = None
        pages = 0
        try:
            while True:
                page = await self._store.fetch_page(
                    collection_name=target,
                    start_time=window.start,
                    end_time=window.end,
                    filter_expression=filter_expression or None,
                    continuation_token=token,
                    max_page_size=self._config.max_results_per_page,
                )
                pages += 1
                for raw in page.records:
                    if not raw.get("message"):
                        continue
                    record = self._normalizer.normalize(
                        raw["message"], raw.get("timestamp"), raw.get("eventId"), target,
                    )
                    if field_filters is None or field_filters.matches(record):
                        records.append(record)
                token = page.continuation_token
                if not token:
                    break
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("Error querying log store", extra={
                "action": "query_error", "collection": target, "extra": {"pages": pages, "error": str(e)},
            })
            raise QueryFailure(target, str(e)) from e

        logger.info("Query complete", extra={
            "action": "query_complete", "collection": target,
            "extra": {"pages": pages, "records": len(records), "filter": filter_expression or None},
        })
        return records

    async def list_collections(self) -> list[str]:
        try:
            return await self._store.list_collections()
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("Error listing collections", extra={"action": "list_collections_error", "extra": str(e)})
            raise QueryFailure("*", str(e)) from e

    async def search_collections(self, pattern: str) -> list[str]:
        """Case-insensitive substring match. An empty pattern matches nothing."""
        if not pattern:
            return []
        needle = pattern.lower()
        return [name for name in await self.list_collections() if needle in name.lower()]


# ─── Pure aggregation helpers ──────────────────────────────────────────────


def resolve_field(record: LogRecord, field_path: str) -> Any:
    """Dot-path lookup over the wire form of a record, then its metadata."""
    wire = record.to_wire()
    for root in (wire, wire.get("metadata") or {}):
        current: Any = root
        for part in field_path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                current = None
                break
        if current is not None:
            return current
    return None


def bucket_key(value: Any) -> str:
    """Stringify a field value the way it reads on the JSON wire (true, 200, null)."""
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return json.dumps(value, default=str, separators=(",", ":"))


def count_by_field(records: Iterable[LogRecord], field_path: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for record in records:
        key = bucket_key(resolve_field(record, field_path))
        counts[key] = counts.get(key, 0) + 1
    return counts


def status_code_counts(records: Iterable[LogRecord]) -> dict[str, int]:
    counts = Counter(str(r.status_code) for r in records if r.status_code is not None)
    return dict(counts)


def top_error_patterns(records: Iterable[LogRecord], k: int = 5) -> list[ErrorPattern]:
    """Group ERROR records by their first three words; ties keep discovery order."""
    patterns: dict[str, int] = {}
    for record in records:
        if record.level != "ERROR":
            continue
        key = " ".join(record.message.split()[:ERROR_PATTERN_TOKENS])
        patterns[key] = patterns.get(key, 0) + 1
    ranked = sorted(patterns.items(), key=lambda item: item[1], reverse=True)
    return [ErrorPattern(pattern=p, count=c) for p, c in ranked[:k]]
