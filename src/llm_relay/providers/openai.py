from __future__ import annotations

import logging
from typing import Any, Optional, Self

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionChunk

from llm_relay.adapters import OpenAIRequestAdapter
from llm_relay.attachments import AttachmentResolver
from llm_relay.callbacks import StreamCallbacks
from llm_relay.providers import ApiFormat
from llm_relay.providers.base import BaseStreamAdapter
from llm_relay.stream_utils import aggregate_tool_calls, chunk_text
from llm_relay.types import StreamRequest


class OpenAIChatStreamAdapter(BaseStreamAdapter):
    """
    Chat Completions streaming (chunk-framed).

    Text deltas are forwarded per frame. Every frame is also buffered so the
    final tool calls can be derived from the whole frame set in one pass once
    the stream ends.

    Use ``OpenAIChatStreamAdapter.from_client`` when you already have an
    ``AsyncOpenAI`` instance.
    """

    api_format = ApiFormat.OPENAI_CHAT_COMPLETIONS

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
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self._owns_client = True
        self._adapter = OpenAIRequestAdapter(resolver)

    # Alternate constructor
    @classmethod
    def from_client(
        cls,
        client: AsyncOpenAI,
        *,
        resolver: Optional[AttachmentResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Build an adapter around an already‑configured ``AsyncOpenAI`` client.
        The client is not closed by the adapter.
        """
        self = cls.__new__(cls)  # bypass __init__
        BaseStreamAdapter.__init__(
            self,
            resolver=resolver,
            logger=logger,
            name=name,
            base_url=str(getattr(client, "base_url", "")) or None,
        )
        self._client = client
        self._adapter = OpenAIRequestAdapter(resolver)
        return self

    async def build_request(self, request: StreamRequest) -> dict[str, Any]:
        args: dict[str, Any] = {
            "model": request.model,
            "messages": await self._adapter.build_messages(
                request.conversation, system_prompt=request.system_prompt
            ),
            "stream": True,
        }
        tools = self._adapter.build_tools(request.tools)
        if tools:
            args["tools"] = tools
        if request.max_tokens is not None:
            args["max_tokens"] = request.max_tokens
        return args

    async def _stream_impl(self, request: StreamRequest, callbacks: StreamCallbacks) -> None:
        args = await self.build_request(request)

        self._log(f"Sending request to Chat Completions model {request.model} (Stream: True)")

        stream = await self._client.chat.completions.create(**args)
        chunks: list[ChatCompletionChunk] = []
        async with stream:
            async for chunk in stream:
                chunks.append(chunk)
                await callbacks.chunk(chunk_text(chunk))

        tool_calls = aggregate_tool_calls(chunks, request.tools) if request.has_tools else None
        await callbacks.complete(None, tool_calls)
