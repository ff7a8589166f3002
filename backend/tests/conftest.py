import os
import sys

import pytest

backend_dir = os.path.join(os.path.dirname(__file__), "..")
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from logpilot.agents.log_query_agent import AgentRun, ToolCallingAgent
from logpilot.config import AppConfig
from logpilot.services.query_service import QueryService
from logpilot.stores.memory_store import InMemoryLogStore
from logpilot.tools.tool_executor import ToolExecutor


def make_events(count: int, prefix: str = "evt", message: str = "INFO request handled") -> list[dict]:
    """Raw store events without timestamps so they fall inside any window."""
    return [
        {"eventId": f"{prefix}-{i}", "timestamp": None, "message": message}
        for i in range(count)
    ]


class ScriptedAgent(ToolCallingAgent):
    """Replays a fixed list of tool calls through a real ToolExecutor.

    ``script`` is a list of ``(tool_name, params)`` pairs; ``text`` is the
    final reply. Extra AgentRun fields (insights, clarification) pass through.
    """

    def __init__(self, executor: ToolExecutor | None, script=None, text: str = "", **run_fields):
        self._executor = executor
        self._script = script or []
        self._text = text
        self._run_fields = run_fields
        self.messages: list[str] = []

    async def run(self, user_message: str) -> AgentRun:
        self.messages.append(user_message)
        invocations = []
        for i, (name, params) in enumerate(self._script):
            invocations.append(await self._executor.execute(name, params, call_id=f"toolu_{i}"))
        return AgentRun(text=self._text, invocations=invocations, **self._run_fields)


@pytest.fixture
def test_config():
    return AppConfig(
        log_store="memory",
        llm_api_key="test-key",
        max_results_per_page=10,
        turn_timeout_seconds=5,
    )


@pytest.fixture
def memory_store():
    return InMemoryLogStore({
        "/aws/ec2/dev/where-tennis/application": [
            {"eventId": "a-1", "timestamp": None,
             "message": '{"level": "ERROR", "message": "Payment failed", "statusCode": 500}'},
            {"eventId": "a-2", "timestamp": None,
             "message": '{"level": "WARN", "message": "Court not found", "statusCode": 404}'},
            {"eventId": "a-3", "timestamp": None,
             "message": '{"level": "INFO", "message": "Booking created", "statusCode": 200}'},
        ],
        "/aws/ec2/dev/where-tennis/nginx": [],
        "/aws/lambda/billing": make_events(2, prefix="bill"),
    })


@pytest.fixture
def query_service(memory_store, test_config):
    return QueryService(memory_store, test_config)


@pytest.fixture
def executor(query_service):
    return ToolExecutor(query_service)
