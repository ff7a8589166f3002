import asyncio
import json
import re
from abc import ABC, abstractmethod
from typing import Any

from anthropic import APIStatusError
from pydantic import BaseModel, Field

from logpilot.config import AppConfig
from logpilot.tools.tool_executor import ToolExecutor
from logpilot.tools.tool_registry import tool_definitions
from logpilot.tools.tool_result import ToolInvocation
from logpilot.utils.llm_client import AnthropicClient
from logpilot.utils.logger import get_logger

logger = get_logger(__name__)

MAX_RETRIES = 3
RETRY_DELAYS = [2, 5, 15]  # seconds

SYSTEM_PROMPT = """You are a CloudWatch log analyst. Your job is to fetch and display actual log entries.

**MANDATORY: Always complete BOTH steps:**
1. Use searchCollections to find the log group (e.g., pattern: "tennis"), or listCollections if the user gives no keyword
2. IMMEDIATELY use fetchSamples with the FIRST log group found to get actual logs

**DO NOT stop after finding log groups. You MUST call fetchSamples!**

When the user asks for filtering, counts or breakdowns:
- Call inferStructure on the samples to learn the available fields
- Then call searchAndAggregate with fieldFilters (level, statusCode), a filterExpression
  (for JSON logs: "{ $.statusCode = 404 }") and aggregateByField as needed

Keep your text response brief. The logs will display in the grid.

If the request is ambiguous, or you have observations worth surfacing, end your reply with a
fenced JSON block:
```json
{"clarificationNeeded": true, "clarificationQuestions": ["..."], "insights": ["..."]}
```"""

_TRAILING_JSON = re.compile(r"```json\s*(\{.*?\})\s*```\s*$", re.DOTALL)


class AgentRun(BaseModel):
    """Everything the orchestrator observes about one agent round-trip."""

    text: str = ""
    invocations: list[ToolInvocation] = Field(default_factory=list)
    clarification_needed: bool = False
    clarification_questions: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)


class ToolCallingAgent(ABC):
    """An agent that answers a user message by calling tools it chooses itself."""

    @abstractmethod
    async def run(self, user_message: str) -> AgentRun:
        ...


def parse_final_response(text: str) -> dict[str, Any]:
    """Split the reply text from an optional trailing JSON signal block."""
    parsed: dict[str, Any] = {"text": text.strip()}
    m = _TRAILING_JSON.search(text)
    if not m:
        return parsed
    try:
        signal = json.loads(m.group(1))
    except json.JSONDecodeError:
        return parsed
    if not isinstance(signal, dict):
        return parsed

    parsed["text"] = text[:m.start()].strip()
    questions = signal.get("clarificationQuestions") or []
    insights = signal.get("insights") or []
    parsed["clarification_questions"] = [str(q) for q in questions if q]
    parsed["clarification_needed"] = bool(signal.get("clarificationNeeded")) or bool(parsed["clarification_questions"])
    parsed["insights"] = [str(i) for i in insights if i]
    return parsed


class AnthropicToolAgent(ToolCallingAgent):
    """Tool-use loop against the Anthropic messages API.

    Every tool call the model makes is executed through the ToolExecutor and
    recorded in order. The loop ends when the model stops asking for tools or
    the iteration ceiling is hit.
    """

    def __init__(self, config: AppConfig, executor: ToolExecutor, llm_client: AnthropicClient | None = None):
        self.agent_name = "log_query_agent"
        self.max_iterations = max(config.agent_max_iterations, 1)
        self._executor = executor
        self.llm_client = llm_client or AnthropicClient(config, agent_name=self.agent_name)
        self._tools = tool_definitions()

    async def _call_llm(self, messages: list[dict]):
        for attempt in range(MAX_RETRIES + 1):
            try:
                return await self.llm_client.chat_with_tools(
                    system=SYSTEM_PROMPT,
                    messages=messages,
                    tools=self._tools,
                )
            except APIStatusError as e:
                retryable = e.status_code in (429, 529) or e.status_code >= 500
                if retryable and attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[attempt]
                    logger.warning("LLM call retry", extra={
                        "agent_name": self.agent_name, "action": "llm_retry",
                        "extra": {"status": e.status_code, "attempt": attempt + 1, "delay": delay},
                    })
                    await asyncio.sleep(delay)
                else:
                    raise
        raise RuntimeError("LLM call failed after all retries")

    async def run(self, user_message: str) -> AgentRun:
        messages: list[dict] = [{"role": "user", "content": user_message}]
        invocations: list[ToolInvocation] = []
        final_text = ""

        for iteration in range(self.max_iterations):
            response = await self._call_llm(messages)

            tool_use_blocks = [b for b in response.content if b.type == "tool_use"]
            text_blocks = [b.text for b in response.content if b.type == "text" and b.text]
            if text_blocks:
                final_text = "\n".join(text_blocks)

            if not tool_use_blocks:
                break

            messages.append({"role": "assistant", "content": response.content})
            tool_results = []
            for block in tool_use_blocks:
                try:
                    invocation = await self._executor.execute(block.name, block.input, call_id=block.id)
                except KeyError:
                    logger.warning("Unknown tool requested", extra={"agent_name": self.agent_name, "action": "unknown_tool", "tool": block.name})
                    tool_results.append({
                        "type": "tool_result",
                        "tool_use_id": block.id,
                        "content": f"Error: unknown tool '{block.name}'",
                        "is_error": True,
                    })
                    continue
                invocations.append(invocation)
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": json.dumps(invocation.output_wire(), default=str),
                    "is_error": not invocation.succeeded,
                })
            messages.append({"role": "user", "content": tool_results})
        else:
            logger.warning("Max iterations reached", extra={
                "agent_name": self.agent_name, "action": "max_iterations", "extra": {"max": self.max_iterations},
            })

        parsed = parse_final_response(final_text)
        logger.info("Agent completed", extra={
            "agent_name": self.agent_name, "action": "complete",
            "extra": {"tool_calls": len(invocations)},
        })
        return AgentRun(invocations=invocations, **parsed)
