from __future__ import annotations

import logging
from typing import Any, Optional, Self

import httpx

from llm_relay._exceptions import TransportError
from llm_relay.accumulator import build_tool_call
from llm_relay.adapters import InteractionsRequestAdapter
from llm_relay.attachments import AttachmentResolver
from llm_relay.callbacks import StreamCallbacks
from llm_relay.providers import ApiFormat
from llm_relay.providers.base import BaseStreamAdapter
from llm_relay.stream_utils import sse_records
from llm_relay.types import StreamRequest, ToolCall


_DEFAULT_INTERACTIONS_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _tool_calls_from_outputs(
    outputs: list[dict[str, Any]], request: StreamRequest
) -> Optional[list[ToolCall]]:
    calls = [
        build_tool_call(
            output.get("id") or "",
            output.get("name") or "",
            output.get("arguments"),
            request.tools,
        )
        for output in outputs
        if isinstance(output, dict) and output.get("type") == "function_call"
    ]
    return calls or None


class GoogleInteractionsStreamAdapter(BaseStreamAdapter):
    """
    Interactions API streaming (raw Server-Sent Events).

    The credential travels in the ``x-goog-api-key`` header and SSE framing is
    selected with ``alt=sse``. Records are ``data:`` lines with bespoke
    ``event_type`` strings; the relay buffers lines itself and skips anything
    that does not parse. Tool calls are read in one pass from the outputs of
    the terminal ``interaction.complete`` record; a stream that ends without
    it is reported as an error.

    Cancelling the task closes the HTTP response; the server may keep
    generating after the client stops reading.
    """

    api_format = ApiFormat.GOOGLE_INTERACTIONS

    def __init__(
        self,
        *,
        api_key: str,
        base_url: Optional[str] = None,
        resolver: Optional[AttachmentResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(
            resolver=resolver,
            logger=logger,
            name=name,
            base_url=base_url or _DEFAULT_INTERACTIONS_BASE_URL,
        )
        self.api_key = api_key
        self._client = httpx.AsyncClient(timeout=None)
        self._owns_client = True
        self._adapter = InteractionsRequestAdapter(resolver)

    @classmethod
    def from_client(
        cls,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        base_url: Optional[str] = None,
        resolver: Optional[AttachmentResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Wrap an existing ``httpx.AsyncClient``. The client is not closed by the adapter.
        """
        if not isinstance(client, httpx.AsyncClient):
            raise TypeError(
                f"GoogleInteractionsStreamAdapter.from_client expects httpx.AsyncClient; "
                f"got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseStreamAdapter.__init__(
            self,
            resolver=resolver,
            logger=logger,
            name=name,
            base_url=base_url or _DEFAULT_INTERACTIONS_BASE_URL,
        )
        self.api_key = api_key
        self._client = client
        self._adapter = InteractionsRequestAdapter(resolver)
        return self

    @property
    def endpoint(self) -> str:
        return f"{(self.base_url or _DEFAULT_INTERACTIONS_BASE_URL).rstrip('/')}/interactions"

    async def build_request(self, request: StreamRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "input": await self._adapter.build_input(request.conversation),
            "stream": True,
        }
        if request.system_prompt:
            body["system_instruction"] = request.system_prompt
        tools = self._adapter.build_tools(request.tools)
        if tools:
            body["tools"] = tools
        if request.max_tokens is not None:
            body["generation_config"] = {"max_output_tokens": request.max_tokens}
        return body

    async def _stream_impl(self, request: StreamRequest, callbacks: StreamCallbacks) -> None:
        body = await self.build_request(request)
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

        self._log(f"Sending request to Interactions model {request.model} (Stream: True)")

        outputs: list[dict[str, Any]] = []
        finish_reason: Optional[str] = None
        completed = False

        async with self._client.stream(
            "POST", self.endpoint, params={"alt": "sse"}, headers=headers, json=body
        ) as response:
            if not response.is_success:
                detail = (await response.aread()).decode("utf-8", errors="replace")
                raise TransportError(
                    f"HTTP {response.status_code}: {detail[:500]}",
                    status_code=response.status_code,
                )

            async for record in sse_records(response.aiter_bytes()):
                done = await self._handle_record(record, callbacks)
                if done is not None:
                    outputs, finish_reason = done
                    completed = True

        if not completed:
            raise TransportError("Stream ended before interaction.complete")

        await callbacks.complete(finish_reason, _tool_calls_from_outputs(outputs, request))

    async def _handle_record(
        self, record: dict[str, Any], callbacks: StreamCallbacks
    ) -> Optional[tuple[list[dict[str, Any]], Optional[str]]]:
        """Apply one record; returns outputs and status for the terminal record."""
        event_type = record.get("event_type")

        if event_type == "content.delta":
            delta = record.get("delta")
            if isinstance(delta, dict) and delta.get("type") == "text":
                await callbacks.chunk(delta.get("text"))

        elif event_type == "interaction.complete":
            interaction = record.get("interaction") or {}
            outputs = interaction.get("outputs") or []
            return (outputs if isinstance(outputs, list) else []), interaction.get("status")

        elif event_type == "error":
            error = record.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise TransportError(message or "Provider reported a stream error")

        return None
