"""Tools module: agent-facing tool models, registry and executor."""
from .schema_inference import infer_schema, SchemaInferenceError
from .tool_result import ToolInvocation
from .tool_registry import TOOL_REGISTRY, tool_definitions
from .tool_executor import ToolExecutor

__all__ = [
    'infer_schema',
    'SchemaInferenceError',
    'ToolInvocation',
    'TOOL_REGISTRY',
    'tool_definitions',
    'ToolExecutor',
]
