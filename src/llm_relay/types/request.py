from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from llm_relay.types.conversation import Conversation
from llm_relay.types.tool import ToolDefinition

__all__ = ["StreamRequest"]


@dataclass(frozen=True, slots=True)
class StreamRequest:
    """Everything one streaming call needs apart from the callbacks."""

    conversation: Conversation
    model: str
    tools: Optional[Sequence[ToolDefinition]] = None
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None

    @property
    def has_tools(self) -> bool:
        return bool(self.tools)
