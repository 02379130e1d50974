"""
LLM Relay - Stream conversational turns from any of several provider wire formats.
"""

import logging

from ._exceptions import (
    ConfigurationError,
    LLMRelayError,
    MissingCredentialError,
    ToolArgumentsError,
    TransportError,
    UnsupportedFormatError,
)
from .attachments import FileAttachmentResolver, ResolvedAttachment
from .factory import create_stream_adapter, stream_for_model, stream_response
from .providers import (
    ApiFormat,
    EnvCredentialStore,
    InMemoryProviderStore,
    ProviderConfig,
    custom_model_id,
    get_api_key,
    parse_model_id,
)
from .providers.anthropic import AnthropicMessagesStreamAdapter
from .providers.base import BaseStreamAdapter
from .providers.google_interactions import GoogleInteractionsStreamAdapter
from .providers.openai import OpenAIChatStreamAdapter
from .providers.openai_responses import OpenAIResponsesStreamAdapter
from .types import (
    AssistantMessage,
    Attachment,
    AttachmentKind,
    StreamRequest,
    ToolCall,
    ToolDefinition,
    ToolResult,
    ToolResultsMessage,
    UserMessage,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "stream_response",
    "stream_for_model",
    "create_stream_adapter",
    "BaseStreamAdapter",
    "OpenAIChatStreamAdapter",
    "OpenAIResponsesStreamAdapter",
    "GoogleInteractionsStreamAdapter",
    "AnthropicMessagesStreamAdapter",
    "ApiFormat",
    "ProviderConfig",
    "InMemoryProviderStore",
    "EnvCredentialStore",
    "get_api_key",
    "custom_model_id",
    "parse_model_id",
    "FileAttachmentResolver",
    "ResolvedAttachment",
    "StreamRequest",
    "UserMessage",
    "AssistantMessage",
    "ToolResultsMessage",
    "Attachment",
    "AttachmentKind",
    "ToolDefinition",
    "ToolCall",
    "ToolResult",
    "LLMRelayError",
    "ConfigurationError",
    "UnsupportedFormatError",
    "MissingCredentialError",
    "TransportError",
    "ToolArgumentsError",
]
