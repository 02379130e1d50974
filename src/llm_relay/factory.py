from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, Type

from llm_relay._exceptions import (
    InvalidModelIdError,
    MissingCredentialError,
    ProviderNotFoundError,
    UnsupportedFormatError,
    classify_error,
)
from llm_relay.attachments import AttachmentResolver
from llm_relay.callbacks import ChunkCallback, CompleteCallback, ErrorCallback, StreamCallbacks
from llm_relay.providers import (
    DEFAULT_API_FORMAT,
    ApiFormat,
    CredentialStore,
    ProviderConfig,
    ProviderStore,
    get_api_key,
    parse_model_id,
)
from llm_relay.providers.anthropic import AnthropicMessagesStreamAdapter
from llm_relay.providers.base import BaseStreamAdapter
from llm_relay.providers.google_interactions import GoogleInteractionsStreamAdapter
from llm_relay.providers.openai import OpenAIChatStreamAdapter
from llm_relay.providers.openai_responses import OpenAIResponsesStreamAdapter
from llm_relay.types import Conversation, StreamRequest, ToolDefinition

__all__ = [
    "create_stream_adapter",
    "resolve_api_format",
    "stream_response",
    "stream_for_model",
]

_logger = logging.getLogger(__name__)

# map ApiFormat to its streaming adapter
_ADAPTER_REGISTRY: dict[ApiFormat, Type[BaseStreamAdapter]] = {
    ApiFormat.OPENAI_CHAT_COMPLETIONS: OpenAIChatStreamAdapter,
    ApiFormat.OPENAI_RESPONSES: OpenAIResponsesStreamAdapter,
    ApiFormat.GOOGLE_INTERACTIONS: GoogleInteractionsStreamAdapter,
    ApiFormat.ANTHROPIC_MESSAGES: AnthropicMessagesStreamAdapter,
}


def resolve_api_format(value: Optional[str]) -> ApiFormat:
    """Map a provider's format tag to ``ApiFormat``; None selects the default."""
    if value is None:
        return DEFAULT_API_FORMAT
    try:
        return ApiFormat(value)
    except ValueError as exc:
        raise UnsupportedFormatError(value) from exc


def create_stream_adapter(
    api_format: ApiFormat | str | None,
    *,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    client: Any = None,
    resolver: Optional[AttachmentResolver] = None,
    logger: Optional[logging.Logger] = None,
    name: Optional[str] = None,
) -> BaseStreamAdapter:
    """
    Factory for the adapter that speaks *api_format*.

    Args:
        api_format: One of the ``ApiFormat`` tags; None means the default format.
        api_key: Credential for the endpoint. Required unless *client* is an
            SDK client that already carries it.
        base_url: Endpoint of the provider.
        client: Optional pre-configured client instance to use.
            - openai_chat_completions / openai_responses: an AsyncOpenAI instance
            - anthropic_messages: an AsyncAnthropic instance
            - google_interactions: an httpx.AsyncClient instance
            Injected clients are never closed by the adapter.
        resolver: Attachment resolver used while encoding user messages.
        logger: Optional custom logger.
        name: Optional component name used as the log prefix.

    Raises:
        UnsupportedFormatError: *api_format* is not a known tag.
    """
    fmt = resolve_api_format(api_format)
    try:
        adapter_cls = _ADAPTER_REGISTRY[fmt]
    except KeyError as exc:
        raise UnsupportedFormatError(fmt) from exc

    if client is not None:  # use caller-supplied client verbatim
        if adapter_cls is GoogleInteractionsStreamAdapter:
            if not api_key:
                raise MissingCredentialError("An API key is required for google_interactions")
            return GoogleInteractionsStreamAdapter.from_client(
                client, api_key=api_key, base_url=base_url,
                resolver=resolver, logger=logger, name=name,
            )
        return adapter_cls.from_client(client, resolver=resolver, logger=logger, name=name)

    if not api_key:
        raise MissingCredentialError(f"An API key is required for {fmt}")
    return adapter_cls(
        api_key=api_key, base_url=base_url, resolver=resolver, logger=logger, name=name
    )


def _provider_api_key(provider: ProviderConfig, credentials: Optional[CredentialStore]) -> str:
    try:
        return get_api_key(provider.id, credentials)
    except MissingCredentialError as exc:
        raise MissingCredentialError(
            f"API key not configured for custom provider: {provider.display_name}"
        ) from exc


async def stream_response(
    provider: ProviderConfig,
    request: StreamRequest,
    *,
    on_chunk: ChunkCallback,
    on_complete: CompleteCallback,
    on_error: ErrorCallback,
    api_key: Optional[str] = None,
    credentials: Optional[CredentialStore] = None,
    resolver: Optional[AttachmentResolver] = None,
    client: Any = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Stream one assistant turn from *provider*, reporting through three callbacks.

    The provider's ``api_format`` selects the adapter. Setup problems
    (unknown format, missing key, an injected client of the wrong type) are
    reported through ``on_error`` before any network activity, and nothing
    else fires. Otherwise exactly one of
    ``on_complete`` / ``on_error`` fires once the stream ends. Cancelling the
    awaiting task stops the stream without a terminal callback.
    """
    log = logger or _logger
    try:
        api_format = resolve_api_format(provider.resolved_format)
        key = api_key or _provider_api_key(provider, credentials)
        adapter = create_stream_adapter(
            api_format,
            api_key=key,
            base_url=provider.base_url,
            client=client,
            resolver=resolver,
            logger=log,
            name=provider.display_name,
        )
    except Exception as exc:
        callbacks = StreamCallbacks(on_chunk, on_complete, on_error, logger=log)
        await callbacks.error(classify_error(exc, log))
        return

    log.info(
        "Streaming %s from provider %s (format: %s)",
        request.model, provider.id, api_format,
    )
    async with adapter:
        await adapter.stream_response(
            request, on_chunk=on_chunk, on_complete=on_complete, on_error=on_error
        )


async def stream_for_model(
    model_id: str,
    conversation: Conversation,
    *,
    providers: ProviderStore,
    on_chunk: ChunkCallback,
    on_complete: CompleteCallback,
    on_error: ErrorCallback,
    tools: Optional[Sequence[ToolDefinition]] = None,
    system_prompt: Optional[str] = None,
    max_tokens: Optional[int] = None,
    credentials: Optional[CredentialStore] = None,
    resolver: Optional[AttachmentResolver] = None,
    client: Any = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Route a ``custom-<providerId>::<modelName>`` model id to its provider and stream.

    The provider record comes from *providers* and the key from *credentials*
    (environment variables when omitted).
    """
    log = logger or _logger
    try:
        parsed = parse_model_id(model_id)
        if parsed is None:
            raise InvalidModelIdError("Invalid custom provider model ID")
        provider_id, model_name = parsed
        provider = providers.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(f"Custom provider not found: {provider_id}")
    except Exception as exc:
        callbacks = StreamCallbacks(on_chunk, on_complete, on_error, logger=log)
        await callbacks.error(classify_error(exc, log))
        return

    request = StreamRequest(
        conversation=conversation,
        model=model_name,
        tools=tools,
        system_prompt=system_prompt,
        max_tokens=max_tokens,
    )
    await stream_response(
        provider,
        request,
        on_chunk=on_chunk,
        on_complete=on_complete,
        on_error=on_error,
        credentials=credentials,
        resolver=resolver,
        client=client,
        logger=log,
    )
