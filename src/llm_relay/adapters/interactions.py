"""Google Interactions adapter for pure request transformations.

Turns are ``{"role", "content": [blocks]}`` with model output under the
``model`` role; function calls and results are content blocks.
"""

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


class InteractionsRequestAdapter:
    def __init__(self, resolver: Optional[AttachmentResolver] = None) -> None:
        self.resolver = resolver

    async def build_input(self, conversation: Conversation) -> list[dict[str, Any]]:
        turns: list[dict[str, Any]] = []
        for msg in conversation:
            if isinstance(msg, UserMessage):
                turns.append({"role": "user", "content": await self.build_user_content(msg)})
            elif isinstance(msg, AssistantMessage):
                content: list[dict[str, Any]] = []
                if msg.text:
                    content.append({"type": "text", "text": msg.text})
                content.extend(
                    {
                        "type": "function_call",
                        "id": call.id,
                        "name": call.namespaced_tool_name,
                        "arguments": call.args,
                    }
                    for call in msg.tool_calls or ()
                )
                turns.append({"role": "model", "content": content})
            elif isinstance(msg, ToolResultsMessage):
                turns.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "function_result",
                                "call_id": result.id,
                                "name": result.namespaced_tool_name,
                                "result": result.content,
                            }
                            for result in msg.results
                        ],
                    }
                )
            else:
                raise TypeError(f"Unsupported message type: {type(msg).__name__}")
        return turns

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
                        "data": resolved.base64,
                        "mime_type": infer_image_media_type(attachment.original_name),
                    }
                )
            elif attachment.kind == AttachmentKind.PDF:
                blocks.append(
                    {"type": "document", "data": resolved.base64, "mime_type": PDF_MEDIA_TYPE}
                )
            else:
                blocks.append({"type": "text", "text": text_attachment_block(attachment, resolved)})
        return blocks

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
