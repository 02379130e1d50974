"""Base class for the per-protocol streaming adapters."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from llm_relay._exceptions import ConfigurationError, classify_error
from llm_relay.attachments import AttachmentResolver
from llm_relay.callbacks import (
    ChunkCallback,
    CompleteCallback,
    ErrorCallback,
    StreamCallbacks,
)
from llm_relay.providers import ApiFormat
from llm_relay.types import StreamRequest


__all__ = ["BaseStreamAdapter"]


class BaseStreamAdapter(ABC):
    """
    Base class for all format adapters. All implementations are async-first.

    An adapter drives one wire protocol: it encodes the request, opens the
    stream, feeds every inbound event to the callbacks and finishes with
    exactly one ``on_complete`` or ``on_error``. Adapters hold no per-call
    state between calls; everything a call accumulates lives in
    :meth:`_stream_impl`'s frame.
    """

    api_format: ClassVar[ApiFormat]

    def __init__(
        self,
        *,
        resolver: Optional[AttachmentResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """
        Initializes the base adapter.

        Args:
            resolver: Attachment resolver used while encoding user messages.
            logger: Optional logger instance. If None, a logger named after
                    this module will be used.
            name: Optional name for this component, used in logging.
                  If None, defaults to the concrete class's name.
            base_url: Endpoint of the provider.
        """
        self.resolver = resolver
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__
        self.base_url = base_url
        self._client: Any = None
        self._owns_client = False

    @abstractmethod
    async def _stream_impl(self, request: StreamRequest, callbacks: StreamCallbacks) -> None:
        """
        Core asynchronous implementation of one streaming call.

        Implementations raise on failure and call ``callbacks.complete`` once
        the stream ended successfully. They never call ``callbacks.error``
        themselves; :meth:`stream_response` is the single place where
        exceptions become error callbacks.
        """
        ...

    async def stream_response(
        self,
        request: StreamRequest,
        *,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> None:
        """
        Stream *request*, reporting through the three callbacks.

        Never raises for provider, transport or parse failures. Task
        cancellation propagates and fires no terminal callback.
        """
        callbacks = StreamCallbacks(on_chunk, on_complete, on_error, logger=self.logger)
        try:
            if not request.model or not request.model.strip():
                raise ConfigurationError("Model identifier is empty")
            await self._stream_impl(request, callbacks)
            if not callbacks.finished:
                await callbacks.complete()
        except Exception as exc:
            await callbacks.error(classify_error(exc, self.logger))

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close the underlying client when this adapter created it.
        Safe to call multiple times.
        """
        client, self._client = self._client, None
        if client is None or not self._owns_client:
            return
        close = getattr(client, "aclose", None) or getattr(client, "close", None)
        if close:
            await close()

    async def __aenter__(self) -> "BaseStreamAdapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
