"""
Query Orchestrator

Drives one conversational turn:
1. Dispatch the user message to the tool-calling agent
2. Echo every tool call and tool result as step events, in agent order
3. Fallback: if the agent discovered log groups but never fetched records,
   query the discovered groups itself (first non-empty group wins)
4. Finalize the summary and emit the terminal result event
5. Close the stream, exactly once, whatever happened above
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from logpilot.agents.log_query_agent import AgentRun, ToolCallingAgent
from logpilot.config import AppConfig, ConfigurationError
from logpilot.models.schemas import LogRecord, TimeRange, TurnResult
from logpilot.services.query_service import QueryFailure, QueryService
from logpilot.tools.tool_models import (
    MAX_RESULT_LOGS, CollectionsOutput, SamplesOutput, SearchOutput,
)
from logpilot.utils.event_emitter import EventStream
from logpilot.utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_WINDOW_HOURS = 24
DISCOVERY_TOOLS = ("searchCollections", "listCollections")


class TurnPhase(str, Enum):
    DISPATCHED = "dispatched"
    TOOL_LOOP = "tool_loop"
    FALLBACK_CHECK = "fallback_check"
    FINALIZING = "finalizing"
    CLOSED = "closed"


def new_turn_id() -> str:
    return str(int(time.time() * 1000))


def placeholder_records(collections: list[str]) -> list[LogRecord]:
    """One display row per discovered collection. Not log entries."""
    now = datetime.now(timezone.utc).isoformat()
    total = len(collections)
    return [
        LogRecord(
            id=f"loggroup-{i}",
            timestamp=now,
            message=f"Log group {i + 1} of {total}",
            collection_name=name,
            level="INFO",
            metadata={"type": "log-group", "name": name},
        )
        for i, name in enumerate(collections)
    ]


def compose_summary(run: AgentRun, records: list[LogRecord], discovered: list[str]) -> str:
    if not records and discovered:
        return f"Found {len(discovered)} collections matching your query."

    summary = run.text or ("" if records else "No logs found matching your query.")
    if run.clarification_needed and run.clarification_questions:
        questions = "\n".join(f"- {q}" for q in run.clarification_questions)
        summary = f"{summary}\n\nClarification needed:\n{questions}".strip()
    elif run.insights:
        insights = "\n".join(f"- {i}" for i in run.insights)
        summary = f"{summary}\n\nInsights:\n{insights}".strip()
    return summary


class QueryOrchestrator:
    """Runs turns against a shared agent and query service. Holds no per-turn state."""

    def __init__(self, agent: ToolCallingAgent, query_service: QueryService, config: AppConfig):
        self._agent = agent
        self._queries = query_service
        self._config = config

    async def run_turn(self, user_message: str, stream: EventStream) -> Optional[TurnResult]:
        """Process one turn, writing every frame to ``stream``.

        Returns the terminal result, or None if the turn hit the wall-clock
        ceiling (the stream is then closed with no terminal event).
        """
        try:
            return await asyncio.wait_for(
                self._process(user_message, stream),
                timeout=self._config.turn_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Turn abandoned after timeout", extra={
                "turn_id": stream.turn_id, "action": "turn_timeout",
                "extra": {"timeout_seconds": self._config.turn_timeout_seconds},
            })
            return None
        finally:
            stream.close()

    async def _process(self, user_message: str, stream: EventStream) -> Optional[TurnResult]:
        turn_id = stream.turn_id
        phase = TurnPhase.DISPATCHED
        logger.info("Turn started", extra={"turn_id": turn_id, "action": phase.value, "extra": user_message[:200]})

        run = AgentRun()
        records: list[LogRecord] = []
        discovered: list[str] = []
        try:
            run = await self._agent.run(user_message)

            phase = TurnPhase.TOOL_LOOP
            self._emit_tool_steps(run, stream)
            discovered, records = self._collect(run)

            phase = TurnPhase.FALLBACK_CHECK
            if discovered and not records:
                logger.warning("Agent found collections but fetched no records, falling back", extra={
                    "turn_id": turn_id, "action": "fallback_start", "extra": {"collections": discovered},
                })
                records = await self._fallback_query(discovered, turn_id)
        except Exception as e:
            logger.error("Turn processing failed, continuing with partial data", exc_info=True, extra={
                "turn_id": turn_id, "action": "turn_error", "extra": {"phase": phase.value, "error": str(e)},
            })

        phase = TurnPhase.FINALIZING
        summary = compose_summary(run, records, discovered)
        if not records and discovered:
            records = placeholder_records(discovered)

        try:
            stream.emit_step("result", summary)
            result = stream.emit_result(summary, records)
        except Exception as e:
            logger.error("Failed to send result", exc_info=True, extra={
                "turn_id": turn_id, "action": "result_send_error", "extra": str(e),
            })
            stream.emit_error(str(e) or "Stream error")
            return None

        logger.info("Turn complete", extra={
            "turn_id": turn_id, "action": TurnPhase.CLOSED.value,
            "extra": {"records": len(records), "steps": stream.steps_emitted, "tool_calls": len(run.invocations)},
        })
        return result

    # ------------------------------------------------------------------

    @staticmethod
    def _emit_tool_steps(run: AgentRun, stream: EventStream) -> None:
        for inv in run.invocations:
            stream.emit_step(
                "tool_call",
                f"Calling tool: {inv.name}",
                data={"toolName": inv.name, "args": inv.input},
            )
        for inv in run.invocations:
            stream.emit_step(
                "tool_result",
                f"Tool {inv.name} completed",
                data={"toolName": inv.name, "result": inv.output_wire()},
            )

    @staticmethod
    def _collect(run: AgentRun) -> tuple[list[str], list[LogRecord]]:
        """Pick discovered collections and fetched records out of the agent's calls."""
        discovered: list[str] = []
        records: list[LogRecord] = []
        for inv in run.invocations:
            output = inv.output
            if inv.name in DISCOVERY_TOOLS and isinstance(output, CollectionsOutput):
                if output.collections:
                    discovered = list(output.collections)
            elif inv.name == "fetchSamples" and isinstance(output, SamplesOutput):
                records.extend(output.samples)
            elif inv.name == "searchAndAggregate" and isinstance(output, SearchOutput):
                records.extend(output.logs)
        return discovered, records

    async def _fallback_query(self, collections: list[str], turn_id: str) -> list[LogRecord]:
        """Query collections in discovery order; stop at the first that has records."""
        end = datetime.now(timezone.utc)
        window = TimeRange(start=end - timedelta(hours=FALLBACK_WINDOW_HOURS), end=end)
        for name in collections:
            try:
                logs = await self._queries.query(collection_name=name, time_range=window)
            except (QueryFailure, ConfigurationError) as e:
                logger.warning("Fallback query failed, treating collection as empty", extra={
                    "turn_id": turn_id, "action": "fallback_query_failed", "collection": name, "extra": str(e),
                })
                continue
            logger.info("Fallback query", extra={
                "turn_id": turn_id, "action": "fallback_query", "collection": name, "extra": {"records": len(logs)},
            })
            if logs:
                return logs[:MAX_RESULT_LOGS]
        logger.warning("No logs found in any discovered collection", extra={
            "turn_id": turn_id, "action": "fallback_empty", "extra": {"collections": len(collections)},
        })
        return []
