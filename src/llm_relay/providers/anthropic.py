from __future__ import annotations

import logging
from typing import Any, Optional, Self, Sequence

from anthropic import AsyncAnthropic
from anthropic.types import Message

from llm_relay.accumulator import build_tool_call
from llm_relay.adapters import AnthropicRequestAdapter
from llm_relay.attachments import AttachmentResolver
from llm_relay.callbacks import StreamCallbacks
from llm_relay.providers import ApiFormat
from llm_relay.providers.base import BaseStreamAdapter
from llm_relay.types import StreamRequest, ToolCall, ToolDefinition

# The Messages API requires max_tokens on every request
DEFAULT_MAX_TOKENS = 4096


def _tool_calls_from_message(
    message: Message, tools: Optional[Sequence[ToolDefinition]]
) -> Optional[list[ToolCall]]:
    calls = [
        build_tool_call(block.id, block.name, dict(block.input or {}), tools)
        for block in message.content
        if getattr(block, "type", None) == "tool_use"
    ]
    return calls or None


class AnthropicMessagesStreamAdapter(BaseStreamAdapter):
    """
    Anthropic Messages streaming through the SDK's stream helper.

    Text events are forwarded as they arrive. Tool calls are read from the
    helper's final assembled message, so no partial JSON is handled here.
    """

    api_format = ApiFormat.ANTHROPIC_MESSAGES

    def __init__(
        self,
        *,
        api_key: str,
        base_url: Optional[str] = None,
        resolver: Optional[AttachmentResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(resolver=resolver, logger=logger, name=name, base_url=base_url)
        self._client = AsyncAnthropic(api_key=api_key, base_url=base_url, max_retries=0)
        self._owns_client = True
        self._adapter = AnthropicRequestAdapter(resolver)

    @classmethod
    def from_client(
        cls,
        client: AsyncAnthropic,
        *,
        resolver: Optional[AttachmentResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """Wrap an existing ``AsyncAnthropic`` client. The client is not closed by the adapter."""
        self = cls.__new__(cls)  # bypass __init__
        BaseStreamAdapter.__init__(
            self,
            resolver=resolver,
            logger=logger,
            name=name,
            base_url=str(getattr(client, "base_url", "")) or None,
        )
        self._client = client
        self._adapter = AnthropicRequestAdapter(resolver)
        return self

    async def build_request(self, request: StreamRequest) -> dict[str, Any]:
        args: dict[str, Any] = {
            "model": request.model,
            "messages": await self._adapter.build_messages(request.conversation),
            "max_tokens": request.max_tokens if request.max_tokens is not None else DEFAULT_MAX_TOKENS,
        }
        if request.system_prompt:
            args["system"] = request.system_prompt
        tools = self._adapter.build_tools(request.tools)
        if tools:
            args["tools"] = tools
        return args

    async def _stream_impl(self, request: StreamRequest, callbacks: StreamCallbacks) -> None:
        args = await self.build_request(request)

        self._log(f"Sending request to Anthropic model {request.model} (Stream: True)")

        async with self._client.messages.stream(**args) as stream:
            async for event in stream:
                if getattr(event, "type", None) == "text":
                    await callbacks.chunk(event.text)
            final = await stream.get_final_message()

        self._log(f"Stream finished with stop_reason={final.stop_reason}", logging.DEBUG)
        await callbacks.complete(final.stop_reason, _tool_calls_from_message(final, request.tools))
