"""Anthropic adapter for pure request transformations."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from llm_relay.attachments import (
    PDF_MEDIA_TYPE,
    AttachmentResolver,
    infer_image_media_type,
    resolve_attachment,
    text_attachment_block,
)
from llm_relay.types import (
    AssistantMessage,
    AttachmentKind,
    Conversation,
    ToolDefinition,
    ToolResultsMessage,
    UserMessage,
)


class AnthropicRequestAdapter:
    """Adapter for converting the conversation model to Anthropic messages."""

    def __init__(self, resolver: Optional[AttachmentResolver] = None) -> None:
        self.resolver = resolver

    async def build_messages(self, conversation: Conversation) -> list[dict[str, Any]]:
        """Convert a conversation to Anthropic's expected format."""
        anthropic_messages: list[dict[str, Any]] = []

        for msg in conversation:
            if isinstance(msg, UserMessage):
                anthropic_messages.append(
                    {"role": "user", "content": await self.build_user_content(msg)}
                )
            elif isinstance(msg, AssistantMessage):
                content: list[dict[str, Any]] = []
                if msg.text:
                    content.append({"type": "text", "text": msg.text})
                for call in msg.tool_calls or ():
                    content.append(
                        {
                            "type": "tool_use",
                            "id": call.id,
                            "name": call.namespaced_tool_name,
                            "input": call.args,
                        }
                    )
                anthropic_messages.append({"role": "assistant", "content": content})
            elif isinstance(msg, ToolResultsMessage):
                anthropic_messages.append(
                    {
                        "role": "user",  # Anthropic mandates 'user' here
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": result.id,
                                "content": result.content,
                            }
                            for result in msg.results
                        ],
                    }
                )
            else:
                raise TypeError(f"Unsupported message type: {type(msg).__name__}")

        return anthropic_messages

    async def build_user_content(self, msg: UserMessage) -> list[dict[str, Any]]:
        blocks: list[dict[str, Any]] = []
        if msg.text:
            blocks.append({"type": "text", "text": msg.text})

        for attachment in msg.attachments:
            resolved = await resolve_attachment(self.resolver, attachment)
            if attachment.kind == AttachmentKind.IMAGE:
                blocks.append(
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": infer_image_media_type(attachment.original_name),
                            "data": resolved.base64,
                        },
                    }
                )
            elif attachment.kind == AttachmentKind.PDF:
                blocks.append(
                    {
                        "type": "document",
                        "source": {
                            "type": "base64",
                            "media_type": PDF_MEDIA_TYPE,
                            "data": resolved.base64,
                        },
                    }
                )
            else:
                blocks.append({"type": "text", "text": text_attachment_block(attachment, resolved)})
        return blocks

    def build_tools(self, tools: Sequence[ToolDefinition] | None) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_schema,
            }
            for tool in tools or ()
        ]
