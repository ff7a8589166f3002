"""Record of one tool invocation made during an agent turn.

ToolInvocation captures the validated input and the typed output of a tool
call. The orchestrator reads ``output`` by tool name to decide what the call
contributed (discovered collections, fetched records).
"""

from pydantic import BaseModel, Field
from typing import Any

from logpilot.tools.tool_models import ToolOutput, output_to_wire


class ToolInvocation(BaseModel):
    """One tool call and its result, in the order the agent made it."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: ToolOutput

    @property
    def succeeded(self) -> bool:
        return bool(getattr(self.output, "success", False))

    def output_wire(self) -> dict[str, Any]:
        return output_to_wire(self.output)
