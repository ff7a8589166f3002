"""Log store adapters."""

from logpilot.config import AppConfig
from .base import LogStoreClient
from .memory_store import InMemoryLogStore, demo_store


def build_store(config: AppConfig) -> LogStoreClient:
    """Select the store implementation named by ``config.log_store``."""
    if config.log_store == "memory":
        return demo_store()
    from .cloudwatch import CloudWatchLogStore
    return CloudWatchLogStore(config)


__all__ = ["LogStoreClient", "InMemoryLogStore", "demo_store", "build_store"]
