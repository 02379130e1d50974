"""OpenAI Chat Completions adapter for pure request transformations."""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from llm_relay.attachments import (
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


class OpenAIRequestAdapter:
    """Adapter for converting the conversation model to Chat Completions messages."""

    def __init__(self, resolver: Optional[AttachmentResolver] = None) -> None:
        self.resolver = resolver

    async def build_messages(
        self,
        conversation: Conversation,
        *,
        system_prompt: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Convert a conversation to OpenAI's expected message list."""
        openai_messages: list[dict[str, Any]] = []
        if system_prompt:
            openai_messages.append({"role": "system", "content": system_prompt})

        for msg in conversation:
            if isinstance(msg, UserMessage):
                openai_messages.append(
                    {"role": "user", "content": await self.build_user_content(msg)}
                )
            elif isinstance(msg, AssistantMessage):
                openai_messages.append(self.build_assistant_message(msg))
            elif isinstance(msg, ToolResultsMessage):
                openai_messages.extend(self.build_tool_result_messages(msg))
            else:
                raise TypeError(f"Unsupported message type: {type(msg).__name__}")

        return openai_messages

    async def build_user_content(self, msg: UserMessage) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = []
        if msg.text:
            parts.append({"type": "text", "text": msg.text})

        for attachment in msg.attachments:
            resolved = await resolve_attachment(self.resolver, attachment)
            if attachment.kind == AttachmentKind.IMAGE:
                media_type = infer_image_media_type(attachment.original_name)
                parts.append(
                    {"type": "image_url", "image_url": {"url": data_url(media_type, resolved)}}
                )
            elif attachment.kind == AttachmentKind.PDF:
                # Chat Completions has no document part
                parts.append(
                    {
                        "type": "text",
                        "text": (
                            f"[PDF File: {attachment.original_name}] (PDF content provided "
                            "as base64 data, not natively supported in this format)"
                        ),
                    }
                )
            else:
                parts.append({"type": "text", "text": text_attachment_block(attachment, resolved)})

        return parts

    def build_assistant_message(self, msg: AssistantMessage) -> dict[str, Any]:
        openai_msg: dict[str, Any] = {"role": "assistant", "content": msg.text or None}
        if msg.tool_calls:
            openai_msg["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.namespaced_tool_name,
                        "arguments": json.dumps(call.args),
                    },
                }
                for call in msg.tool_calls
            ]
        elif openai_msg["content"] is None:
            # content may only be null when tool_calls is present
            openai_msg["content"] = ""
        return openai_msg

    def build_tool_result_messages(self, msg: ToolResultsMessage) -> list[dict[str, Any]]:
        """
        Return the messages OpenAI expects for tool results, one per result.
        """
        return [
            {"role": "tool", "tool_call_id": result.id, "content": result.content}
            for result in msg.results
        ]

    def build_tools(self, tools: Sequence[ToolDefinition] | None) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            }
            for tool in tools or ()
        ]
