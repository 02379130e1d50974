"""Pure transformation adapters for the supported wire protocols."""

from .openai import OpenAIRequestAdapter
from .responses import ResponsesRequestAdapter
from .interactions import InteractionsRequestAdapter
from .anthropic import AnthropicRequestAdapter

__all__ = [
    "OpenAIRequestAdapter",
    "ResponsesRequestAdapter",
    "InteractionsRequestAdapter",
    "AnthropicRequestAdapter",
]
