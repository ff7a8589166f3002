"""Tests for QueryOrchestrator: one conversational turn end to end.

Uses ScriptedAgent (conftest) so tool calls run through the real
ToolExecutor against an in-memory store.
"""

import asyncio
import json
import pytest
from unittest.mock import patch

from logpilot.agents.log_query_agent import AgentRun, ToolCallingAgent
from logpilot.config import AppConfig
from logpilot.orchestrator import QueryOrchestrator, compose_summary, new_turn_id, placeholder_records
from logpilot.services.query_service import QueryService
from logpilot.stores.memory_store import InMemoryLogStore
from logpilot.tools.tool_executor import ToolExecutor
from logpilot.utils.event_emitter import EventStream, StreamEncodingError

from conftest import ScriptedAgent, make_events

APP = "/aws/ec2/dev/where-tennis/application"
NGINX = "/aws/ec2/dev/where-tennis/nginx"


async def _run(orchestrator, message="show me tennis logs"):
    stream = EventStream(turn_id="42")
    result = await orchestrator.run_turn(message, stream)
    frames = [json.loads(line) async for line in stream]
    return result, frames


def _steps(frames):
    return [f["step"] for f in frames if f["type"] == "step"]


class _FailingAgent(ToolCallingAgent):
    async def run(self, user_message):
        raise RuntimeError("model unavailable")


class _SlowAgent(ToolCallingAgent):
    async def run(self, user_message):
        await asyncio.sleep(5)
        return AgentRun(text="too late")


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_then_fetch(query_service, executor, test_config):
    agent = ScriptedAgent(executor, [
        ("searchCollections", {"pattern": "tennis"}),
        ("fetchSamples", {"collectionName": APP}),
    ], text="Here are the latest tennis logs.")
    result, frames = await _run(QueryOrchestrator(agent, query_service, test_config))

    assert result.summary == "Here are the latest tennis logs."
    assert len(result.logs) == 3
    assert agent.messages == ["show me tennis logs"]

    steps = _steps(frames)
    assert [s["type"] for s in steps] == ["tool_call", "tool_call", "tool_result", "tool_result", "result"]
    assert [s["step"] for s in steps] == [0, 1, 2, 3, 4]
    assert steps[0]["content"] == "Calling tool: searchCollections"
    assert steps[0]["data"] == {"toolName": "searchCollections", "args": {"pattern": "tennis"}}
    assert steps[3]["content"] == "Tool fetchSamples completed"
    assert steps[3]["data"]["result"]["sampleCount"] == 3
    assert steps[4]["content"] == result.summary

    assert frames[-1]["type"] == "result"
    assert frames[-1]["result"]["summary"] == result.summary
    assert frames[-1]["result"]["insights"] == []
    assert frames[-1]["result"]["chainOfThought"] == []


@pytest.mark.asyncio
async def test_search_and_aggregate_logs_collected(query_service, executor, test_config):
    agent = ScriptedAgent(executor, [
        ("searchAndAggregate", {"collectionName": APP, "fieldFilters": {"statusCode": 404}}),
    ], text="One 404.")
    result, _ = await _run(QueryOrchestrator(agent, query_service, test_config))
    assert [r.status_code for r in result.logs] == [404]


# ---------------------------------------------------------------------------
# Fallback and placeholders
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fallback_fetches_first_non_empty_collection(test_config):
    store = InMemoryLogStore({
        "/svc/a-empty": [],
        "/svc/b-logs": make_events(3, prefix="b"),
        "/svc/c-logs": make_events(4, prefix="c"),
    })
    queries = QueryService(store, test_config)
    agent = ScriptedAgent(ToolExecutor(queries), [("searchCollections", {"pattern": "svc"})],
                          text="I found the services.")

    result, frames = await _run(QueryOrchestrator(agent, queries, test_config))

    assert result.summary == "I found the services."
    assert [r.id for r in result.logs] == ["b-0", "b-1", "b-2"]
    assert [r["collection_name"] for r in store.page_requests] == ["/svc/a-empty", "/svc/b-logs"]
    assert frames[-1]["result"]["logs"][0]["collectionName"] == "/svc/b-logs"


@pytest.mark.asyncio
async def test_fallback_takes_first_hundred(test_config):
    config = AppConfig(log_store="memory", max_results_per_page=1000)
    store = InMemoryLogStore({"/svc/big": make_events(130)})
    queries = QueryService(store, config)
    agent = ScriptedAgent(ToolExecutor(queries), [("listCollections", {})], text="ok")
    result, _ = await _run(QueryOrchestrator(agent, queries, config))
    assert len(result.logs) == 100


@pytest.mark.asyncio
async def test_fallback_skips_failing_collection(test_config):
    store = InMemoryLogStore(
        {"/svc/broken": make_events(2), "/svc/ok": make_events(1, prefix="ok")},
        fail_on={"/svc/broken"},
    )
    queries = QueryService(store, test_config)
    agent = ScriptedAgent(ToolExecutor(queries), [("listCollections", {})], text="")
    result, _ = await _run(QueryOrchestrator(agent, queries, test_config))
    assert [r.id for r in result.logs] == ["ok-0"]


@pytest.mark.asyncio
async def test_all_empty_collections_become_placeholders(test_config):
    store = InMemoryLogStore({"/svc/one": [], "/svc/two": []})
    queries = QueryService(store, test_config)
    agent = ScriptedAgent(ToolExecutor(queries), [("searchCollections", {"pattern": "svc"})], text="whatever")

    result, frames = await _run(QueryOrchestrator(agent, queries, test_config))

    assert result.summary == "Found 2 collections matching your query."
    assert [r.id for r in result.logs] == ["loggroup-0", "loggroup-1"]
    assert result.logs[1].message == "Log group 2 of 2"
    assert result.logs[0].metadata == {"type": "log-group", "name": "/svc/one"}
    assert frames[-1]["result"]["logs"][0]["collectionName"] == "/svc/one"


@pytest.mark.asyncio
async def test_last_non_empty_discovery_wins(test_config):
    store = InMemoryLogStore({"/alpha": [], "/beta": []})
    queries = QueryService(store, test_config)
    agent = ScriptedAgent(ToolExecutor(queries), [
        ("listCollections", {}),
        ("searchCollections", {"pattern": "beta"}),
        ("searchCollections", {"pattern": "nothing"}),
    ])
    result, _ = await _run(QueryOrchestrator(agent, queries, test_config))
    assert result.summary == "Found 1 collections matching your query."
    assert [r.collection_name for r in result.logs] == ["/beta"]


@pytest.mark.asyncio
async def test_no_discovery_no_records(query_service, executor, test_config):
    agent = ScriptedAgent(executor, [], text="")
    result, frames = await _run(QueryOrchestrator(agent, query_service, test_config))
    assert result.summary == "No logs found matching your query."
    assert result.logs == []
    assert [s["type"] for s in _steps(frames)] == ["result"]


# ---------------------------------------------------------------------------
# Summary composition
# ---------------------------------------------------------------------------

def test_compose_summary_with_clarification():
    run = AgentRun(text="Which service?", clarification_needed=True,
                   clarification_questions=["Which environment?", "Which time range?"], insights=["ignored"])
    summary = compose_summary(run, [], [])
    assert summary == "Which service?\n\nClarification needed:\n- Which environment?\n- Which time range?"


def test_compose_summary_with_insights():
    records = placeholder_records(["/x"])
    run = AgentRun(text="Done.", insights=["404s spiked at noon"])
    assert compose_summary(run, records, []) == "Done.\n\nInsights:\n- 404s spiked at noon"


def test_new_turn_id_is_millis():
    assert new_turn_id().isdigit()


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_agent_failure_still_yields_valid_result(query_service, test_config):
    result, frames = await _run(QueryOrchestrator(_FailingAgent(), query_service, test_config))
    assert result.summary == "No logs found matching your query."
    assert frames[-1]["type"] == "result"


@pytest.mark.asyncio
async def test_result_encoding_failure_emits_error_frame(query_service, executor, test_config):
    agent = ScriptedAgent(executor, [], text="fine")
    orchestrator = QueryOrchestrator(agent, query_service, test_config)
    with patch.object(EventStream, "emit_result", side_effect=StreamEncodingError("cannot encode")):
        result, frames = await _run(orchestrator)

    assert result is None
    assert frames[-1] == {"type": "error", "error": "cannot encode"}
    assert not any(f["type"] == "result" for f in frames)


@pytest.mark.asyncio
async def test_timeout_closes_stream_without_result(query_service):
    config = AppConfig(log_store="memory", turn_timeout_seconds=0.05)
    stream = EventStream(turn_id="slow")
    result = await QueryOrchestrator(_SlowAgent(), query_service, config).run_turn("hello", stream)
    frames = [line async for line in stream]
    assert result is None
    assert stream.closed
    assert frames == []


@pytest.mark.asyncio
async def test_fallback_keeps_agent_text_verbatim(test_config):
    store = InMemoryLogStore({"app-logs": make_events(3, prefix="app")})
    queries = QueryService(store, test_config)
    agent = ScriptedAgent(ToolExecutor(queries), [("searchCollections", {"pattern": "app"})],
                          text="The app-logs group looks relevant.")
    result, frames = await _run(QueryOrchestrator(agent, queries, test_config))

    assert result.summary == "The app-logs group looks relevant."
    assert [r.id for r in result.logs] == ["app-0", "app-1", "app-2"]
    steps = _steps(frames)
    assert [s["step"] for s in steps] == list(range(len(steps)))
    assert frames[-1]["type"] == "result"
