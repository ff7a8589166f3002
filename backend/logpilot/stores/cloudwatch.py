"""CloudWatch Logs adapter over boto3.

boto3 is synchronous, so each API call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from logpilot.config import AppConfig, ConfigurationError
from logpilot.models.schemas import LogPage
from logpilot.stores.base import LogStoreClient, DEFAULT_COLLECTION_LIMIT
from logpilot.utils.logger import get_logger

logger = get_logger(__name__)

# FilterLogEvents rejects limits above this
MAX_FILTER_LIMIT = 10000


def _millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class CloudWatchLogStore(LogStoreClient):
    """LogStoreClient backed by the ``logs`` service client."""

    def __init__(self, config: AppConfig, client=None):
        self._config = config
        self._client = client

    def _get_client(self):
        """Lazily build the boto3 client from explicit config credentials."""
        if self._client is not None:
            return self._client
        if not self._config.is_aws_configured():
            raise ConfigurationError(
                "AWS credentials are not configured. Set AWS_ACCESS_KEY_ID and "
                "AWS_SECRET_ACCESS_KEY (and AWS_SESSION_TOKEN for temporary credentials)."
            )
        session = boto3.Session(
            aws_access_key_id=self._config.aws_access_key_id,
            aws_secret_access_key=self._config.aws_secret_access_key,
            aws_session_token=self._config.aws_session_token or None,
            region_name=self._config.aws_region,
        )
        self._client = session.client("logs")
        return self._client

    async def list_collections(self, limit: int = DEFAULT_COLLECTION_LIMIT) -> list[str]:
        client = self._get_client()
        try:
            response = await asyncio.to_thread(client.describe_log_groups, limit=limit)
        except (ClientError, BotoCoreError) as e:
            logger.error("describe_log_groups failed", extra={"action": "list_collections_error", "extra": str(e)})
            raise
        return [g.get("logGroupName", "") for g in response.get("logGroups", []) if g.get("logGroupName")]

    async def fetch_page(
        self,
        collection_name: str,
        start_time: datetime,
        end_time: datetime,
        filter_expression: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_page_size: int = 1000,
    ) -> LogPage:
        client = self._get_client()
        kwargs = {
            "logGroupName": collection_name,
            "startTime": _millis(start_time),
            "endTime": _millis(end_time),
            "limit": min(max_page_size, MAX_FILTER_LIMIT),
        }
        if filter_expression:
            kwargs["filterPattern"] = filter_expression
        if continuation_token:
            kwargs["nextToken"] = continuation_token

        response = await asyncio.to_thread(client.filter_log_events, **kwargs)
        events = [
            {
                "message": e.get("message"),
                "timestamp": e.get("timestamp"),
                "eventId": e.get("eventId"),
            }
            for e in response.get("events", [])
        ]
        return LogPage(records=events, continuation_token=response.get("nextToken") or None)
