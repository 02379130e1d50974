"""The three-callback output contract shared by every format adapter."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from llm_relay.types import ToolCall

__all__ = ["ChunkCallback", "CompleteCallback", "ErrorCallback", "StreamCallbacks"]

_MaybeAwaitable = Union[None, Awaitable[None]]

ChunkCallback = Callable[[str], _MaybeAwaitable]
CompleteCallback = Callable[[Optional[str], Optional[list[ToolCall]]], _MaybeAwaitable]
ErrorCallback = Callable[[str], _MaybeAwaitable]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class StreamCallbacks:
    """
    Wraps caller callbacks for one streaming call.

    Guarantees that ``on_chunk`` only ever sees non-empty text, that no chunk
    is delivered after the call has finished, and that exactly one of
    ``on_complete`` / ``on_error`` fires, once. Callbacks may be plain
    functions or coroutine functions.
    """

    def __init__(
        self,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._on_chunk = on_chunk
        self._on_complete = on_complete
        self._on_error = on_error
        self._logger = logger or logging.getLogger(__name__)
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    async def chunk(self, text: Optional[str]) -> None:
        if not text or self._finished:
            return
        await _maybe_await(self._on_chunk(text))

    async def complete(
        self,
        finish_reason: Optional[str] = None,
        tool_calls: Optional[Sequence[ToolCall]] = None,
    ) -> None:
        if self._finished:
            self._logger.debug("Ignoring completion after the stream finished")
            return
        self._finished = True
        # An empty list is reported as "no tool calls"
        calls = list(tool_calls) if tool_calls else None
        await _maybe_await(self._on_complete(finish_reason, calls))

    async def error(self, message: str) -> None:
        if self._finished:
            self._logger.debug("Ignoring error after the stream finished: %s", message)
            return
        self._finished = True
        await _maybe_await(self._on_error(message))
