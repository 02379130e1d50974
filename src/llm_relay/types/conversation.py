"""Protocol-agnostic conversation model consumed by every encoder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal, Optional, Sequence, Union

from llm_relay.types.tool import ToolCall, ToolResult

__all__ = [
    "AttachmentKind",
    "Attachment",
    "UserMessage",
    "AssistantMessage",
    "ToolResultsMessage",
    "Message",
    "Conversation",
]


class AttachmentKind(StrEnum):
    IMAGE = "image"
    PDF = "pdf"
    TEXT = "text"
    WEBPAGE = "webpage"


@dataclass(frozen=True, slots=True)
class Attachment:
    """
    Reference to user-supplied content.

    ``locator`` is opaque to the relay; only the attachment resolver
    interprets it. ``original_name`` drives media-type inference and is used
    as the label in text encodings.
    """

    kind: AttachmentKind
    original_name: str
    locator: str


@dataclass(frozen=True, slots=True)
class UserMessage:
    text: Optional[str] = None
    attachments: tuple[Attachment, ...] = ()
    role: Literal["user"] = "user"


@dataclass(frozen=True, slots=True)
class AssistantMessage:
    text: Optional[str] = None
    tool_calls: Optional[tuple[ToolCall, ...]] = None
    role: Literal["assistant"] = "assistant"


@dataclass(frozen=True, slots=True)
class ToolResultsMessage:
    results: tuple[ToolResult, ...] = ()
    role: Literal["tool_results"] = "tool_results"


Message = Union[UserMessage, AssistantMessage, ToolResultsMessage]

# Turn order is significant; the relay only ever reads it.
Conversation = Sequence[Message]
