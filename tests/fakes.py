"""Deterministic client fakes that replay recorded stream shapes offline."""

from __future__ import annotations

import asyncio
from collections import deque
from types import SimpleNamespace
from typing import Any, Iterable, Sequence

from openai.types.chat import ChatCompletionChunk

from llm_relay.attachments import ResolvedAttachment
from llm_relay.types import Attachment


class FakeAsyncStream:
    """Async iterator (and async context manager) that replays pre-defined events."""

    def __init__(self, events: Iterable[Any], *, fail_with: Exception | None = None) -> None:
        self._events = deque(events)
        self._fail_with = fail_with
        self.closed = False

    def __aiter__(self) -> "FakeAsyncStream":
        return self

    async def __anext__(self) -> Any:
        if not self._events:
            if self._fail_with is not None:
                raise self._fail_with
            raise StopAsyncIteration
        await asyncio.sleep(0)
        return self._events.popleft()

    async def __aenter__(self) -> "FakeAsyncStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True


class FakeCreate:
    """Records keyword arguments and hands back the prepared stream."""

    def __init__(self, stream: FakeAsyncStream) -> None:
        self._stream = stream
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> FakeAsyncStream:
        self.calls.append(dict(kwargs))
        return self._stream


def build_chat_client(chunks: Sequence[ChatCompletionChunk], **stream_kwargs: Any):
    """Return a fake AsyncOpenAI client for chat completions and its stream."""
    stream = FakeAsyncStream(chunks, **stream_kwargs)
    completions = FakeCreate(stream)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client, stream


def build_responses_client(events: Sequence[Any], **stream_kwargs: Any):
    """Return a fake AsyncOpenAI client for the Responses API and its stream."""
    stream = FakeAsyncStream(events, **stream_kwargs)
    client = SimpleNamespace(responses=FakeCreate(stream))
    return client, stream


class FakeMessageStream(FakeAsyncStream):
    def __init__(self, events: Iterable[Any], final_message: Any, **kwargs: Any) -> None:
        super().__init__(events, **kwargs)
        self._final_message = final_message

    async def get_final_message(self) -> Any:
        return self._final_message


class FakeMessages:
    """Minimal stub for ``AsyncAnthropic.messages``."""

    def __init__(self, stream: FakeMessageStream) -> None:
        self._stream = stream
        self.calls: list[dict[str, Any]] = []

    def stream(self, **kwargs: Any) -> FakeMessageStream:
        self.calls.append(dict(kwargs))
        return self._stream


def build_anthropic_client(events: Sequence[Any], final_message: Any, **stream_kwargs: Any):
    """Return a fake AsyncAnthropic client and its message stream."""
    stream = FakeMessageStream(events, final_message, **stream_kwargs)
    client = SimpleNamespace(messages=FakeMessages(stream))
    return client, stream


# --- recorded shapes -------------------------------------------------------

def chat_chunk(
    content: str | None = None,
    tool_calls: list[dict[str, Any]] | None = None,
    finish_reason: str | None = None,
) -> ChatCompletionChunk:
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    return ChatCompletionChunk.model_validate(
        {
            "id": "chatcmpl-1",
            "object": "chat.completion.chunk",
            "created": 0,
            "model": "gpt-test",
            "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
        }
    )


def tool_fragment(
    index: int,
    *,
    id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict[str, Any]:
    fragment: dict[str, Any] = {"index": index}
    if id is not None:
        fragment["id"] = id
        fragment["type"] = "function"
    function: dict[str, Any] = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        fragment["function"] = function
    return fragment


def event(type: str, **fields: Any) -> SimpleNamespace:
    return SimpleNamespace(type=type, **fields)


def function_call_item(item_id: str, call_id: str, name: str, arguments: str = "") -> SimpleNamespace:
    return SimpleNamespace(
        type="function_call", id=item_id, call_id=call_id, name=name, arguments=arguments
    )


def anthropic_message(content: list[Any], stop_reason: str = "end_turn") -> SimpleNamespace:
    return SimpleNamespace(content=content, stop_reason=stop_reason)


# --- attachments -----------------------------------------------------------

class DictResolver:
    """Resolves attachments from an in-memory ``locator -> content`` mapping."""

    def __init__(self, contents: dict[str, bytes | str]) -> None:
        self.contents = contents
        self.calls: list[str] = []

    def resolve(self, attachment: Attachment) -> ResolvedAttachment:
        self.calls.append(attachment.locator)
        value = self.contents[attachment.locator]
        if isinstance(value, bytes):
            return ResolvedAttachment(attachment.original_name, data=value)
        return ResolvedAttachment(attachment.original_name, text=value)


class AsyncDictResolver(DictResolver):
    async def resolve(self, attachment: Attachment) -> ResolvedAttachment:  # type: ignore[override]
        await asyncio.sleep(0)
        return DictResolver.resolve(self, attachment)


# --- callbacks -------------------------------------------------------------

class Recorder:
    """Collects every callback invocation in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_chunk(self, text: str) -> None:
        self.events.append(("chunk", text))

    def on_complete(self, finish_reason, tool_calls) -> None:
        self.events.append(("complete", (finish_reason, tool_calls)))

    def on_error(self, message: str) -> None:
        self.events.append(("error", message))

    @property
    def callbacks(self) -> dict[str, Any]:
        return {
            "on_chunk": self.on_chunk,
            "on_complete": self.on_complete,
            "on_error": self.on_error,
        }

    @property
    def chunks(self) -> list[str]:
        return [value for kind, value in self.events if kind == "chunk"]

    @property
    def terminals(self) -> list[tuple[str, Any]]:
        return [(kind, value) for kind, value in self.events if kind != "chunk"]
