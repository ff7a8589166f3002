"""
Tool registry: the fixed set of operations the agent may call, with their
descriptions and input models. This is the single source of truth; the
executor validates against it and the agent sends its declarations to the
model.
"""

from logpilot.tools.tool_models import (
    FetchSamplesInput,
    InferStructureInput,
    ListCollectionsInput,
    SearchAndAggregateInput,
    SearchCollectionsInput,
)

TOOL_REGISTRY = [
    {
        "name": "listCollections",
        "description": "List all available CloudWatch log groups. Use this when the user asks what logs exist.",
        "input_model": ListCollectionsInput,
    },
    {
        "name": "searchCollections",
        "description": (
            "Search for log groups whose name contains a pattern (case-insensitive). "
            'Use this when the user mentions keywords like "tennis", "nginx" or "application".'
        ),
        "input_model": SearchCollectionsInput,
    },
    {
        "name": "fetchSamples",
        "description": (
            "Fetch sample log entries from a log group to understand its structure and available "
            "fields. Always call this before executing queries to discover the schema."
        ),
        "input_model": FetchSamplesInput,
    },
    {
        "name": "inferStructure",
        "description": (
            "Analyze sample log entries to discover their fields and data types. "
            "Use this after fetching samples to decide how to query the logs."
        ),
        "input_model": InferStructureInput,
    },
    {
        "name": "searchAndAggregate",
        "description": (
            "Search a log group with an optional filter pattern, exact-match level/statusCode "
            "filters and an optional field to count values of. Use this after understanding the log structure."
        ),
        "input_model": SearchAndAggregateInput,
    },
]

TOOLS_BY_NAME = {t["name"]: t for t in TOOL_REGISTRY}


def tool_definitions() -> list[dict]:
    """Declarations in the Anthropic tools format."""
    definitions = []
    for tool in TOOL_REGISTRY:
        schema = tool["input_model"].model_json_schema(by_alias=True)
        definitions.append({
            "name": tool["name"],
            "description": tool["description"],
            "input_schema": {
                "type": "object",
                "properties": schema.get("properties", {}),
                "required": schema.get("required", []),
                **({"$defs": schema["$defs"]} if "$defs" in schema else {}),
            },
        })
    return definitions
