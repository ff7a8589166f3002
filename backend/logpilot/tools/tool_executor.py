"""
ToolExecutor: dispatches agent tool calls by name.
Each handler takes a validated input model and returns a typed output model.
"""

import uuid
from typing import Any

from pydantic import ValidationError

from logpilot.config import ConfigurationError
from logpilot.services.query_service import (
    FieldFilters, QueryFailure, QueryService,
    count_by_field, status_code_counts, top_error_patterns,
)
from logpilot.tools.schema_inference import SchemaInferenceError, infer_schema
from logpilot.tools.tool_models import (
    MAX_RESULT_LOGS, MAX_SAMPLE_LIMIT,
    Aggregation, CollectionsOutput, FetchSamplesInput, InferStructureInput,
    ListCollectionsInput, SamplesOutput, SearchAndAggregateInput,
    SearchCollectionsInput, SearchOutput, StructureOutput, ToolError,
)
from logpilot.tools.tool_registry import TOOLS_BY_NAME
from logpilot.tools.tool_result import ToolInvocation
from logpilot.utils.logger import get_logger, redact

logger = get_logger(__name__)


class ToolExecutor:
    """Stateless tool dispatcher over a QueryService."""

    def __init__(self, query_service: QueryService):
        self._queries = query_service

    HANDLERS: dict[str, str] = {
        "listCollections": "_list_collections",
        "searchCollections": "_search_collections",
        "fetchSamples": "_fetch_samples",
        "inferStructure": "_infer_structure",
        "searchAndAggregate": "_search_and_aggregate",
    }

    async def execute(self, name: str, params: dict[str, Any] | None, call_id: str | None = None) -> ToolInvocation:
        """Validate input, run the handler and wrap the outcome.

        Bad input and store failures become a ToolError output so the agent
        can react to them. Unknown tool names raise KeyError.
        """
        handler_name = self.HANDLERS[name]  # KeyError if unknown tool
        input_model = TOOLS_BY_NAME[name]["input_model"]
        params = params or {}
        call_id = call_id or f"call-{uuid.uuid4().hex[:12]}"

        logger.info("Tool called", extra={"action": "tool_call", "tool": name, "extra": redact(params)})

        try:
            validated = input_model.model_validate(params)
        except ValidationError as e:
            error = f"Invalid input for '{name}': {e.errors(include_url=False)}"
            logger.warning("Tool input rejected", extra={"action": "tool_invalid_input", "tool": name, "extra": error})
            return ToolInvocation(id=call_id, name=name, input=params, output=ToolError(error=error))

        handler = getattr(self, handler_name)
        try:
            output = await handler(validated)
        except (QueryFailure, ConfigurationError) as e:
            logger.warning("Tool failed", extra={"action": "tool_failed", "tool": name, "extra": str(e)})
            output = ToolError(error=str(e))

        return ToolInvocation(
            id=call_id,
            name=name,
            input=validated.model_dump(mode="json", by_alias=True),
            output=output,
        )

    # ------------------------------------------------------------------
    # discovery
    # ------------------------------------------------------------------

    async def _list_collections(self, params: ListCollectionsInput) -> CollectionsOutput:
        groups = await self._queries.list_collections()
        return CollectionsOutput(collections=groups, total=len(groups), message=f"Found {len(groups)} total log groups")

    async def _search_collections(self, params: SearchCollectionsInput) -> CollectionsOutput:
        groups = await self._queries.search_collections(params.pattern)
        if groups:
            message = f"Found {len(groups)} log groups matching \"{params.pattern}\""
        else:
            message = f"No log groups found matching \"{params.pattern}\""
        return CollectionsOutput(collections=groups, total=len(groups), message=message)

    # ------------------------------------------------------------------
    # sampling and schema
    # ------------------------------------------------------------------

    async def _fetch_samples(self, params: FetchSamplesInput) -> SamplesOutput:
        window = self._queries.default_time_range(params.window_hours)
        logs = await self._queries.query(collection_name=params.collection_name, time_range=window)
        samples = logs[:min(params.limit, MAX_SAMPLE_LIMIT)]
        return SamplesOutput(
            collection_name=params.collection_name,
            samples=samples,
            sample_count=len(samples),
            total_found=len(logs),
            message=f"Fetched {len(samples)} sample logs from {params.collection_name}",
        )

    async def _infer_structure(self, params: InferStructureInput) -> StructureOutput:
        try:
            schema = infer_schema(params.samples)
        except SchemaInferenceError as e:
            return StructureOutput(success=False, message=str(e))
        return StructureOutput(
            success=True,
            schema_fields=schema,
            total_fields=len(schema),
            message=f"Discovered {len(schema)} fields in log structure",
        )

    # ------------------------------------------------------------------
    # search + aggregate
    # ------------------------------------------------------------------

    async def _search_and_aggregate(self, params: SearchAndAggregateInput) -> SearchOutput:
        window = self._queries.default_time_range(params.window_hours)
        filters = FieldFilters(level=params.field_filters.level, status_code=params.field_filters.status_code)
        logs = await self._queries.query(
            collection_name=params.collection_name,
            time_range=window,
            filter_expression=params.filter_expression or None,
            field_filters=None if filters.is_empty() else filters,
        )

        result = SearchOutput(
            collection_name=params.collection_name,
            total_logs=len(logs),
            time_range={"start": window.start.isoformat(), "end": window.end.isoformat()},
            logs=logs[:MAX_RESULT_LOGS],
        )
        if params.aggregate_by_field and logs:
            result.aggregation = Aggregation(
                field=params.aggregate_by_field,
                counts=count_by_field(logs, params.aggregate_by_field),
            )
        if logs:
            result.status_code_counts = status_code_counts(logs)
            result.top_error_patterns = [p.label for p in top_error_patterns(logs)]
        return result
