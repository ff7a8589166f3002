import asyncio
import json
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from pydantic import BaseModel

from logpilot.models.schemas import (
    ErrorFrame, LogRecord, ResultFrame, StepEvent, StepFrame, StepType, TurnResult,
)
from logpilot.utils.logger import get_logger

logger = get_logger(__name__)

_CLOSED = object()


class StreamEncodingError(Exception):
    """An event could not be serialized to a wire frame."""


def encode_frame(frame: BaseModel) -> str:
    """One JSON object per line, camelCase keys, UTF-8 safe."""
    try:
        payload = frame.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(payload, ensure_ascii=False, allow_nan=False) + "\n"
    except (TypeError, ValueError) as e:
        raise StreamEncodingError(f"Failed to encode {type(frame).__name__}: {e}") from e


class EventStream:
    """Single-producer, ordered, append-only channel of encoded frames for one turn.

    The orchestrator is the only writer. Consumers iterate with ``async for``
    and stop when the stream is closed. Step numbers start at 0 and grow by
    one per emitted step regardless of its type.
    """

    def __init__(self, turn_id: str):
        self.turn_id = turn_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._step_counter = 0
        self._closed = False
        self._events: list[BaseModel] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def steps_emitted(self) -> int:
        return self._step_counter

    def _put(self, frame: BaseModel) -> None:
        if self._closed:
            raise RuntimeError("Event stream already closed")
        encoded = encode_frame(frame)
        self._events.append(frame)
        self._queue.put_nowait(encoded)

    def emit_step(self, step_type: StepType, content: str, data: dict[str, Any] | None = None) -> StepEvent:
        """Emit one step event and advance the counter."""
        number = self._step_counter
        step = StepEvent(
            id=f"step-{self.turn_id}-{number}",
            step=number,
            type=step_type,
            content=content,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        self._put(StepFrame(step=step))
        self._step_counter += 1
        logger.debug("Step emitted", extra={"turn_id": self.turn_id, "action": step_type, "extra": number})
        return step

    def emit_result(self, summary: str, logs: list[LogRecord], insights: list[str] | None = None) -> TurnResult:
        result = TurnResult(summary=summary, logs=logs, insights=insights or [], chain_of_thought=[])
        self._put(ResultFrame(result=result))
        return result

    def emit_error(self, message: str) -> None:
        self._put(ErrorFrame(error=message))

    def close(self) -> None:
        """Signal end of stream. Idempotent."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def get_all_events(self) -> list[BaseModel]:
        """Return all frames emitted so far, in order."""
        return list(self._events)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
