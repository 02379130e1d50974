from __future__ import annotations

import logging
from typing import Any, Optional, Self

from openai import AsyncOpenAI

from llm_relay._exceptions import TransportError
from llm_relay.accumulator import ToolCallAccumulator
from llm_relay.adapters import ResponsesRequestAdapter
from llm_relay.attachments import AttachmentResolver
from llm_relay.callbacks import StreamCallbacks
from llm_relay.providers import ApiFormat
from llm_relay.providers.base import BaseStreamAdapter
from llm_relay.types import StreamRequest


def _finish_reason(response: Any) -> Optional[str]:
    if response is None:
        return None
    details = getattr(response, "incomplete_details", None)
    reason = getattr(details, "reason", None) if details is not None else None
    return reason or getattr(response, "status", None)


def _failure_message(response: Any) -> str:
    error = getattr(response, "error", None)
    message = getattr(error, "message", None) if error is not None else None
    return message or "Response failed"


class OpenAIResponsesStreamAdapter(BaseStreamAdapter):
    """
    Responses API streaming (item-event).

    Events are explicitly typed. Text deltas go straight to ``on_chunk``;
    function-call items are rebuilt by a :class:`ToolCallAccumulator` and
    reported together on completion.
    """

    api_format = ApiFormat.OPENAI_RESPONSES

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
        self._adapter = ResponsesRequestAdapter(resolver)

    @classmethod
    def from_client(
        cls,
        client: AsyncOpenAI,
        *,
        resolver: Optional[AttachmentResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """Wrap an existing ``AsyncOpenAI`` client. The client is not closed by the adapter."""
        self = cls.__new__(cls)  # bypass __init__
        BaseStreamAdapter.__init__(
            self,
            resolver=resolver,
            logger=logger,
            name=name,
            base_url=str(getattr(client, "base_url", "")) or None,
        )
        self._client = client
        self._adapter = ResponsesRequestAdapter(resolver)
        return self

    async def build_request(self, request: StreamRequest) -> dict[str, Any]:
        args: dict[str, Any] = {
            "model": request.model,
            "input": await self._adapter.build_input(request.conversation),
            "stream": True,
        }
        if request.system_prompt:
            args["instructions"] = request.system_prompt
        tools = self._adapter.build_tools(request.tools)
        if tools:
            args["tools"] = tools
        if request.max_tokens is not None:
            args["max_output_tokens"] = request.max_tokens
        return args

    async def _stream_impl(self, request: StreamRequest, callbacks: StreamCallbacks) -> None:
        args = await self.build_request(request)

        self._log(f"Sending request to Responses model {request.model} (Stream: True)")

        accumulator = ToolCallAccumulator(request.tools, logger=self.logger)
        finish_reason: Optional[str] = None

        stream = await self._client.responses.create(**args)
        async with stream:
            async for event in stream:
                event_type = getattr(event, "type", None)

                if event_type == "response.output_text.delta":
                    await callbacks.chunk(event.delta)

                elif event_type == "response.output_item.added":
                    item = event.item
                    if getattr(item, "type", None) == "function_call":
                        accumulator.start(
                            item.id or item.call_id,
                            item.call_id,
                            item.name,
                            getattr(item, "arguments", None) or "",
                        )

                elif event_type == "response.function_call_arguments.delta":
                    accumulator.append(event.item_id, event.delta or "")

                elif event_type == "response.function_call_arguments.done":
                    accumulator.replace(event.item_id, event.arguments or "")

                elif event_type == "response.output_item.done":
                    item = event.item
                    if getattr(item, "type", None) == "function_call":
                        accumulator.finish(item.id or item.call_id)

                elif event_type in ("response.completed", "response.incomplete"):
                    finish_reason = _finish_reason(getattr(event, "response", None))

                elif event_type == "response.failed":
                    raise TransportError(_failure_message(getattr(event, "response", None)))

                elif event_type == "error":
                    raise TransportError(
                        getattr(event, "message", None) or "Provider reported a stream error"
                    )

        accumulator.finish_all()
        await callbacks.complete(finish_reason, accumulator.tool_calls)
