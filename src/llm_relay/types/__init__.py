from .conversation import (
    AssistantMessage,
    Attachment,
    AttachmentKind,
    Conversation,
    Message,
    ToolResultsMessage,
    UserMessage,
)
from .request import StreamRequest
from .tool import ToolCall, ToolDefinition, ToolMetadata, ToolResult, find_tool_metadata

__all__ = [
    "AssistantMessage",
    "Attachment",
    "AttachmentKind",
    "Conversation",
    "Message",
    "ToolResultsMessage",
    "UserMessage",
    "StreamRequest",
    "ToolCall",
    "ToolDefinition",
    "ToolMetadata",
    "ToolResult",
    "find_tool_metadata",
]
