import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from logpilot.config import AppConfig, ConfigurationError
from logpilot.services.query_service import QueryFailure, QueryService
from logpilot.stores import build_store
from logpilot.stores.cloudwatch import CloudWatchLogStore
from logpilot.stores.memory_store import InMemoryLogStore

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 2, tzinfo=timezone.utc)


def _store(client):
    config = AppConfig(aws_access_key_id="AKIAEXAMPLE", aws_secret_access_key="secret", max_results_per_page=2)
    return CloudWatchLogStore(config, client=client), config


@pytest.mark.asyncio
async def test_list_collections():
    client = MagicMock()
    client.describe_log_groups.return_value = {
        "logGroups": [{"logGroupName": "/aws/a"}, {"logGroupName": "/aws/b"}, {}],
    }
    store, _ = _store(client)
    assert await store.list_collections() == ["/aws/a", "/aws/b"]
    client.describe_log_groups.assert_called_once_with(limit=50)


@pytest.mark.asyncio
async def test_fetch_page_request_shape():
    client = MagicMock()
    client.filter_log_events.return_value = {
        "events": [{"message": "hello", "timestamp": 1704067200000, "eventId": "e1", "ingestionTime": 1}],
        "nextToken": "tok-2",
    }
    store, _ = _store(client)

    page = await store.fetch_page("/aws/a", START, END, filter_expression="ERROR", continuation_token="tok-1")

    client.filter_log_events.assert_called_once_with(
        logGroupName="/aws/a",
        startTime=1704067200000,
        endTime=1704153600000,
        limit=1000,
        filterPattern="ERROR",
        nextToken="tok-1",
    )
    assert page.records == [{"message": "hello", "timestamp": 1704067200000, "eventId": "e1"}]
    assert page.continuation_token == "tok-2"


@pytest.mark.asyncio
async def test_fetch_page_omits_empty_filter_and_token():
    client = MagicMock()
    client.filter_log_events.return_value = {"events": []}
    store, _ = _store(client)
    page = await store.fetch_page("/aws/a", START, END, max_page_size=50000)
    kwargs = client.filter_log_events.call_args.kwargs
    assert "filterPattern" not in kwargs
    assert "nextToken" not in kwargs
    assert kwargs["limit"] == 10000
    assert page.continuation_token is None


@pytest.mark.asyncio
async def test_query_service_paginates_over_cloudwatch():
    client = MagicMock()
    client.filter_log_events.side_effect = [
        {"events": [{"message": "a", "eventId": "1"}, {"message": "b", "eventId": "2"}], "nextToken": "t"},
        {"events": [{"message": "c error", "eventId": "3"}]},
    ]
    store, config = _store(client)
    records = await QueryService(store, config).query(collection_name="/aws/a")
    assert [r.id for r in records] == ["1", "2", "3"]
    assert records[2].level == "ERROR"
    assert client.filter_log_events.call_count == 2
    assert client.filter_log_events.call_args_list[1].kwargs["nextToken"] == "t"
    assert client.filter_log_events.call_args_list[0].kwargs["limit"] == 2


@pytest.mark.asyncio
async def test_client_error_surfaces_as_query_failure():
    client = MagicMock()
    client.filter_log_events.side_effect = ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "The specified log group does not exist."}},
        "FilterLogEvents",
    )
    store, config = _store(client)
    with pytest.raises(QueryFailure, match="does not exist"):
        await QueryService(store, config).query(collection_name="/aws/missing")


@pytest.mark.asyncio
async def test_missing_credentials():
    store = CloudWatchLogStore(AppConfig())
    with pytest.raises(ConfigurationError, match="AWS credentials"):
        await store.fetch_page("/aws/a", START, END)


def test_build_store():
    assert isinstance(build_store(AppConfig(log_store="memory")), InMemoryLogStore)
    assert isinstance(build_store(AppConfig(log_store="cloudwatch")), CloudWatchLogStore)
