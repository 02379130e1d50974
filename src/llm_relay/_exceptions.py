"""
Translate noisy provider tracebacks into a unified `LLMRelayError`, while
preserving the original exception for full tracebacks.
"""

from __future__ import annotations

import importlib
import logging
from typing import Final, Optional, Type

__all__: tuple[str, ...] = (
    "LLMRelayError",
    "ConfigurationError",
    "UnsupportedFormatError",
    "InvalidModelIdError",
    "ProviderNotFoundError",
    "MissingCredentialError",
    "TransportError",
    "ToolArgumentsError",
    "AttachmentResolutionError",
    "classify_error",
)


class LLMRelayError(RuntimeError):
    """Public relay‐level exception.

    Attributes:
        original_exc: The underlying provider exception, if any.
    """

    original_exc: Optional[Exception]

    def __init__(self, message: str, original_exc: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.original_exc = original_exc
        if original_exc is not None:
            self.__cause__ = original_exc


class ConfigurationError(LLMRelayError):
    """Detected before any network call: bad provider, key or model id."""


class UnsupportedFormatError(ConfigurationError):
    """Provider record names an API format the relay does not speak."""

    def __init__(self, api_format: object) -> None:
        super().__init__(f"Unsupported API format: {api_format}")
        self.api_format = api_format


class InvalidModelIdError(ConfigurationError):
    pass


class ProviderNotFoundError(ConfigurationError):
    pass


class MissingCredentialError(ConfigurationError):
    pass


class TransportError(LLMRelayError):
    """Non-success HTTP status, failed connection or a provider error event."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        original_exc: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, original_exc)
        self.status_code = status_code


class ToolArgumentsError(LLMRelayError):
    """A finalized tool call carried argument text that is not a JSON object."""

    def __init__(self, tool_name: str, arguments: str, original_exc: Optional[Exception] = None) -> None:
        preview = arguments[:200] + "..." if len(arguments) > 200 else arguments
        super().__init__(
            f"Invalid arguments for tool call '{tool_name}': {preview!r}", original_exc
        )
        self.tool_name = tool_name
        self.arguments = arguments


class AttachmentResolutionError(LLMRelayError):
    pass


def _import_exception(path: str) -> Type[Exception]:
    """Dynamically import an exception type, falling back to a never-raised type."""
    module_name, _, attr = path.rpartition(".")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError):
        return type(f"_Missing{attr}", (Exception,), {})


OpenAI_APIError: Final = _import_exception("openai.APIError")
OpenAI_APIStatusError: Final = _import_exception("openai.APIStatusError")
OpenAI_APIConnectionError: Final = _import_exception("openai.APIConnectionError")
OpenAI_RateLimitError: Final = _import_exception("openai.RateLimitError")

Anthropic_APIError: Final = _import_exception("anthropic.APIError")
Anthropic_APIStatusError: Final = _import_exception("anthropic.APIStatusError")
Anthropic_APIConnectionError: Final = _import_exception("anthropic.APIConnectionError")
Anthropic_RateLimitError: Final = _import_exception("anthropic.RateLimitError")

HTTPX_TransportError: Final = _import_exception("httpx.TransportError")

API_ERRORS: Final[tuple[Type[Exception], ...]] = (
    OpenAI_APIError,
    Anthropic_APIError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    OpenAI_APIConnectionError,
    Anthropic_APIConnectionError,
    HTTPX_TransportError,
    TimeoutError,
    ConnectionError,
)

RATE_LIMIT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    OpenAI_RateLimitError,
    Anthropic_RateLimitError,
)


def classify_error(
    exc: Exception,
    logger: Optional[logging.Logger] = None,
) -> str:
    """Return a friendly, concise message for *exc* suitable for ``on_error``."""
    log = logger or logging.getLogger("llm_relay.exceptions")

    if isinstance(exc, LLMRelayError):
        msg = str(exc)
        log.warning("Stream failed: %s", msg)
        return msg

    status = getattr(exc, "status_code", None)
    if isinstance(exc, RATE_LIMIT_ERRORS):
        msg = f"Rate‑limit exceeded – please retry later: {exc}"
    elif isinstance(exc, CONN_ERRORS):
        msg = f"Connection problem – unable to reach the LLM provider: {exc}"
    elif isinstance(exc, API_ERRORS):
        label = f"API error ({status})" if status is not None else "Provider reported an error"
        msg = f"{label}: {exc}"
    else:
        msg = f"{exc.__class__.__name__}: {exc}"
        # Unknown errors get a stack trace
        log.exception(msg)
        return msg

    log.warning("Wrapping provider exception: %s", msg)
    return msg
