"""In-memory LogStoreClient for tests and local demo mode."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from logpilot.models.schemas import LogPage
from logpilot.stores.base import LogStoreClient, DEFAULT_COLLECTION_LIMIT


def _millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class InMemoryLogStore(LogStoreClient):
    """Holds raw events per collection and pages through them with integer tokens.

    ``filter_expression`` is matched as a plain case-sensitive substring of the
    message, which is enough to emulate CloudWatch term filters in tests.
    """

    def __init__(self, collections: dict[str, list[dict[str, Any]]] | None = None, fail_on: set[str] | None = None):
        self._collections: dict[str, list[dict[str, Any]]] = {
            name: list(events) for name, events in (collections or {}).items()
        }
        self._fail_on = set(fail_on or ())
        self.page_requests: list[dict[str, Any]] = []

    def add_events(self, collection_name: str, events: list[dict[str, Any]]) -> None:
        self._collections.setdefault(collection_name, []).extend(events)

    async def list_collections(self, limit: int = DEFAULT_COLLECTION_LIMIT) -> list[str]:
        return list(self._collections.keys())[:limit]

    async def fetch_page(
        self,
        collection_name: str,
        start_time: datetime,
        end_time: datetime,
        filter_expression: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_page_size: int = 1000,
    ) -> LogPage:
        self.page_requests.append({
            "collection_name": collection_name,
            "filter_expression": filter_expression,
            "continuation_token": continuation_token,
            "max_page_size": max_page_size,
        })
        if collection_name in self._fail_on or collection_name not in self._collections:
            raise RuntimeError(f"The specified log group does not exist: {collection_name}")

        start_ms, end_ms = _millis(start_time), _millis(end_time)
        matching = [
            e for e in self._collections[collection_name]
            if e.get("timestamp") is None or start_ms <= e["timestamp"] <= end_ms
        ]
        if filter_expression:
            matching = [e for e in matching if filter_expression in str(e.get("message", ""))]

        offset = int(continuation_token) if continuation_token else 0
        page = matching[offset:offset + max_page_size]
        next_offset = offset + len(page)
        token = str(next_offset) if next_offset < len(matching) else None
        return LogPage(records=page, continuation_token=token)


def demo_store() -> InMemoryLogStore:
    """A small fixture set for running the API without AWS credentials."""
    now = datetime.now(timezone.utc)
    app_events = []
    for i in range(30):
        ts = now - timedelta(minutes=5 * i)
        status = 500 if i % 7 == 0 else (404 if i % 5 == 0 else 200)
        level = "ERROR" if status == 500 else ("WARN" if status == 404 else "INFO")
        app_events.append({
            "eventId": f"app-{i}",
            "timestamp": _millis(ts),
            "message": json.dumps({
                "level": level,
                "message": f"GET /api/bookings/{i} completed",
                "statusCode": status,
                "requestId": f"req-{i:04d}",
                "duration": 20 + i,
                "user": {"id": f"u-{i % 4}", "plan": "pro" if i % 2 else "free"},
            }),
        })
    nginx_events = [
        {
            "eventId": f"nginx-{i}",
            "timestamp": _millis(now - timedelta(minutes=3 * i)),
            "message": f'10.0.0.{i} - - "GET /courts HTTP/1.1" {404 if i % 3 == 0 else 200} 512 request_id: ng-{i}',
        }
        for i in range(20)
    ]
    return InMemoryLogStore({
        "/aws/ec2/development/where-tennis/application": app_events,
        "/aws/ec2/development/where-tennis/nginx/access": nginx_events,
        "/aws/lambda/empty-function": [],
    })
