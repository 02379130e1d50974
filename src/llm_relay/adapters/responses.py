"""OpenAI Responses adapter: conversation model to a flat ``input`` item list."""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from llm_relay.attachments import (
    PDF_MEDIA_TYPE,
    AttachmentResolver,
    data_url,
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


class ResponsesRequestAdapter:
    """Adapter for converting the conversation model to Responses API input items."""

    def __init__(self, resolver: Optional[AttachmentResolver] = None) -> None:
        self.resolver = resolver

    async def build_input(self, conversation: Conversation) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for msg in conversation:
            if isinstance(msg, UserMessage):
                items.append({"role": "user", "content": await self.build_user_content(msg)})
            elif isinstance(msg, AssistantMessage):
                # Model output and its tool calls are separate items here
                if msg.text:
                    items.append({"role": "assistant", "content": msg.text})
                for call in msg.tool_calls or ():
                    items.append(
                        {
                            "type": "function_call",
                            "call_id": call.id,
                            "name": call.namespaced_tool_name,
                            "arguments": json.dumps(call.args),
                        }
                    )
            elif isinstance(msg, ToolResultsMessage):
                items.extend(
                    {
                        "type": "function_call_output",
                        "call_id": result.id,
                        "output": result.content,
                    }
                    for result in msg.results
                )
            else:
                raise TypeError(f"Unsupported message type: {type(msg).__name__}")
        return items

    async def build_user_content(self, msg: UserMessage) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = []
        if msg.text:
            parts.append({"type": "input_text", "text": msg.text})

        for attachment in msg.attachments:
            resolved = await resolve_attachment(self.resolver, attachment)
            if attachment.kind == AttachmentKind.IMAGE:
                media_type = infer_image_media_type(attachment.original_name)
                parts.append(
                    {"type": "input_image", "image_url": data_url(media_type, resolved)}
                )
            elif attachment.kind == AttachmentKind.PDF:
                parts.append(
                    {
                        "type": "input_file",
                        "filename": attachment.original_name,
                        "file_data": data_url(PDF_MEDIA_TYPE, resolved),
                    }
                )
            else:
                parts.append(
                    {"type": "input_text", "text": text_attachment_block(attachment, resolved)}
                )
        return parts

    def build_tools(self, tools: Sequence[ToolDefinition] | None) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            }
            for tool in tools or ()
        ]
