"""Input/output models for the agent-callable tools.

Every tool has one input model (validated before dispatch) and one output
model. Wire keys are camelCase to match what the model sees in the tool
declarations.
"""

from pydantic import BaseModel, Field
from typing import Any, Literal, Optional

from logpilot.models.schemas import FieldDescriptor, LogLevel, LogRecord

MAX_SAMPLE_LIMIT = 50
MAX_RESULT_LOGS = 100


class _CamelModel(BaseModel):
    model_config = {"populate_by_name": True}


# ── Inputs ───────────────────────────────────────────────────────────


class ListCollectionsInput(_CamelModel):
    pass


class SearchCollectionsInput(_CamelModel):
    pattern: str = Field(..., description='Substring to look for in log group names, e.g. "tennis", "nginx", "application"')


class FetchSamplesInput(_CamelModel):
    collection_name: str = Field(..., alias="collectionName", description="The exact log group name to fetch samples from")
    limit: int = Field(default=10, ge=1, description=f"Number of sample logs to fetch (default 10, max {MAX_SAMPLE_LIMIT})")
    window_hours: float = Field(default=24, gt=0, alias="windowHours", description="How many hours back to search (default 24)")


class InferStructureInput(_CamelModel):
    samples: list[Any] = Field(..., description="Sample log entries to analyze")


class FieldFiltersInput(_CamelModel):
    level: Optional[LogLevel] = None
    status_code: Optional[int] = Field(default=None, alias="statusCode")


class SearchAndAggregateInput(_CamelModel):
    collection_name: str = Field(..., alias="collectionName", description="The exact log group name to query")
    filter_expression: str = Field(
        default="", alias="filterExpression",
        description='CloudWatch filter pattern. Empty string for no filtering. For JSON logs: "{ $.statusCode = 404 }"',
    )
    window_hours: float = Field(default=24, gt=0, alias="windowHours", description="How many hours back to search")
    field_filters: FieldFiltersInput = Field(
        default_factory=FieldFiltersInput, alias="fieldFilters",
        description="Exact-match filters applied to normalized records",
    )
    aggregate_by_field: str = Field(
        default="", alias="aggregateByField",
        description='Field to count values of. Empty string for none. Examples: "statusCode", "level", "user.id"',
    )


# ── Outputs ──────────────────────────────────────────────────────────


class CollectionsOutput(_CamelModel):
    success: bool = True
    collections: list[str]
    total: int
    message: str


class SamplesOutput(_CamelModel):
    success: bool = True
    collection_name: str = Field(alias="collectionName")
    samples: list[LogRecord]
    sample_count: int = Field(alias="sampleCount")
    total_found: int = Field(alias="totalFound")
    message: str


class StructureOutput(_CamelModel):
    success: bool
    schema_fields: list[FieldDescriptor] = Field(default_factory=list, alias="schema")
    total_fields: int = Field(default=0, alias="totalFields")
    message: str


class Aggregation(_CamelModel):
    field: str
    counts: dict[str, int]


class SearchOutput(_CamelModel):
    success: bool = True
    collection_name: str = Field(alias="collectionName")
    total_logs: int = Field(alias="totalLogs")
    time_range: dict[str, str] = Field(alias="timeRange")
    logs: list[LogRecord]
    aggregation: Optional[Aggregation] = None
    status_code_counts: Optional[dict[str, int]] = Field(default=None, alias="statusCodeCounts")
    top_error_patterns: Optional[list[str]] = Field(default=None, alias="topErrorPatterns")


class ToolError(_CamelModel):
    success: Literal[False] = False
    error: str


ToolOutput = CollectionsOutput | SamplesOutput | StructureOutput | SearchOutput | ToolError


# Fields of a sample record shown to the model; the full record is kept for the UI.
SAMPLE_WIRE_FIELDS = ("timestamp", "message", "level", "statusCode", "metadata")


def output_to_wire(output: BaseModel) -> dict[str, Any]:
    """Serialize a tool output the way the model and the UI see it."""
    data = output.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(output, SamplesOutput):
        data["samples"] = [
            {k: v for k, v in s.items() if k in SAMPLE_WIRE_FIELDS} for s in data["samples"]
        ]
    return data
