from pydantic import BaseModel, Field
from typing import Any, Optional, Literal
from datetime import datetime


LogLevel = Literal["INFO", "WARN", "ERROR", "DEBUG"]
LOG_LEVELS: tuple[str, ...] = ("INFO", "WARN", "ERROR", "DEBUG")

MAX_MESSAGE_LENGTH = 500
TRUNCATION_MARKER = "..."


class LogRecord(BaseModel):
    """One normalized log entry. Wire keys are camelCase."""

    model_config = {"populate_by_name": True, "frozen": True}

    id: str
    timestamp: str
    message: str
    collection_name: Optional[str] = Field(default=None, alias="collectionName")
    level: LogLevel = "INFO"
    status_code: Optional[int] = Field(default=None, alias="statusCode")
    request_id: Optional[str] = Field(default=None, alias="requestId")
    duration: Optional[int | float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FieldDescriptor(BaseModel):
    """One discovered field path across a sample set."""

    model_config = {"populate_by_name": True}

    path: str
    observed_types: list[str] = Field(default_factory=list, alias="observedTypes")
    example: Any = None


class ErrorPattern(BaseModel):
    pattern: str
    count: int

    @property
    def label(self) -> str:
        return f"{self.pattern}: {self.count} occurrences"


class TimeRange(BaseModel):
    start: datetime
    end: datetime


class LogPage(BaseModel):
    """One page returned by a log store. No token means the scan is complete."""

    records: list[dict[str, Any]] = Field(default_factory=list)
    continuation_token: Optional[str] = None


# ── Stream events ────────────────────────────────────────────────────


StepType = Literal["tool_call", "tool_result", "result"]


class StepEvent(BaseModel):
    id: str
    step: int
    type: StepType
    content: str
    data: Optional[dict[str, Any]] = None
    timestamp: datetime


class TurnResult(BaseModel):
    model_config = {"populate_by_name": True}

    summary: str
    logs: list[LogRecord] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    chain_of_thought: list[dict[str, Any]] = Field(default_factory=list, alias="chainOfThought")


class StepFrame(BaseModel):
    type: Literal["step"] = "step"
    step: StepEvent


class ResultFrame(BaseModel):
    type: Literal["result"] = "result"
    result: TurnResult


class ErrorFrame(BaseModel):
    type: Literal["error"] = "error"
    error: str


class TokenUsage(BaseModel):
    agent_name: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
