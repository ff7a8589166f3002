"""Abstract LogStoreClient: a read-only, cursor-paginated log source."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from logpilot.models.schemas import LogPage

# CloudWatch caps DescribeLogGroups at 50 per call
DEFAULT_COLLECTION_LIMIT = 50


class LogStoreClient(ABC):
    """Read-only contract over a store of named log collections.

    Implementations are shared across turns and must be safe for concurrent use.
    """

    @abstractmethod
    async def list_collections(self, limit: int = DEFAULT_COLLECTION_LIMIT) -> list[str]:
        ...

    @abstractmethod
    async def fetch_page(
        self,
        collection_name: str,
        start_time: datetime,
        end_time: datetime,
        filter_expression: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_page_size: int = 1000,
    ) -> LogPage:
        """Return one page of raw events shaped ``{message, timestamp, eventId}``.

        ``timestamp`` is epoch milliseconds. A page without a continuation
        token is the last one.
        """
        ...

    async def close(self) -> None:
        pass
