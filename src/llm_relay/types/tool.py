"""
Provider‑neutral dataclasses for client‑side tool use.

They are intentionally minimal: everything provider‑specific lives in adapters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

__all__ = [
    "ToolDefinition",
    "ToolMetadata",
    "ToolCall",
    "ToolResult",
    "find_tool_metadata",
]


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A tool advertised to the model. ``name`` is already namespaced."""
    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolMetadata:
    """Description and schema copied from the matching ToolDefinition."""
    description: str
    input_schema: dict[str, Any]


@dataclass(slots=True)
class ToolCall:
    """A model‑agnostic request emitted by the LLM to call a local tool."""
    id: str                     # provider correlation token
    namespaced_tool_name: str
    args: dict[str, Any]
    tool_metadata: Optional[ToolMetadata] = None


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Payload to send back to the LLM after the tool finished running."""
    id: str                     # must match the originating ToolCall id
    namespaced_tool_name: str
    content: str


def find_tool_metadata(
    tools: Iterable[ToolDefinition] | None, name: str
) -> ToolMetadata | None:
    """Return metadata for the first definition named *name*, or None."""
    for tool in tools or ():
        if tool.name == name:
            return ToolMetadata(
                description=tool.description, input_schema=tool.input_schema
            )
    return None
