from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Final, Mapping, Optional, Protocol

from dotenv import load_dotenv

from llm_relay._exceptions import MissingCredentialError


class ApiFormat(StrEnum):
    OPENAI_CHAT_COMPLETIONS = "openai_chat_completions"
    OPENAI_RESPONSES = "openai_responses"
    GOOGLE_INTERACTIONS = "google_interactions"
    ANTHROPIC_MESSAGES = "anthropic_messages"


DEFAULT_API_FORMAT: Final = ApiFormat.OPENAI_CHAT_COMPLETIONS

CUSTOM_MODEL_PREFIX: Final = "custom-"
MODEL_ID_SEPARATOR: Final = "::"


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """
    A user-configured inference endpoint.

    The API key is deliberately not part of the record; it is resolved
    through a :class:`CredentialStore`.
    """

    id: str
    display_name: str
    base_url: str
    api_format: Optional[str] = None

    @property
    def resolved_format(self) -> str:
        """The configured format tag, or the default when none is set."""
        return self.api_format if self.api_format is not None else DEFAULT_API_FORMAT


class ProviderStore(Protocol):
    def get(self, provider_id: str) -> ProviderConfig | None: ...


class CredentialStore(Protocol):
    def get_api_key(self, provider_id: str) -> str | None: ...


class InMemoryProviderStore:
    """Provider records held in a dict, keyed by provider id."""

    def __init__(self, providers: Mapping[str, ProviderConfig] | None = None) -> None:
        self._providers: dict[str, ProviderConfig] = dict(providers or {})

    def add(self, provider: ProviderConfig) -> None:
        self._providers[provider.id] = provider

    def get(self, provider_id: str) -> ProviderConfig | None:
        return self._providers.get(provider_id)


def env_var_for(provider_id: str) -> str:
    """Environment variable holding the key for *provider_id*."""
    slug = re.sub(r"[^A-Za-z0-9]", "_", provider_id).upper()
    return f"LLM_RELAY_{slug}_API_KEY"


class EnvCredentialStore:
    """Reads ``LLM_RELAY_<PROVIDER_ID>_API_KEY`` from the environment (and ``.env``)."""

    def __init__(self, *, dotenv: bool = True) -> None:
        if dotenv:
            load_dotenv()

    def get_api_key(self, provider_id: str) -> str | None:
        return os.getenv(env_var_for(provider_id)) or None


def get_api_key(provider_id: str, credentials: CredentialStore | None = None) -> str:
    """Return the API key for *provider_id* or raise MissingCredentialError."""
    store = credentials if credentials is not None else EnvCredentialStore()
    key = store.get_api_key(provider_id)
    if not key:
        raise MissingCredentialError(f"{env_var_for(provider_id)} missing")
    return key


def custom_model_id(provider_id: str, model_name: str) -> str:
    return f"{CUSTOM_MODEL_PREFIX}{provider_id}{MODEL_ID_SEPARATOR}{model_name}"


def parse_model_id(model_id: str) -> tuple[str, str] | None:
    """
    Split ``custom-<providerId>::<modelName>`` into its two parts.

    Returns None when the id does not name a custom provider or has no
    model part.
    """
    provider_part, sep, model_name = model_id.partition(MODEL_ID_SEPARATOR)
    if not sep or not provider_part.startswith(CUSTOM_MODEL_PREFIX):
        return None
    provider_id = provider_part[len(CUSTOM_MODEL_PREFIX):]
    if not provider_id or not model_name:
        return None
    return provider_id, model_name


__all__ = [
    "ApiFormat",
    "DEFAULT_API_FORMAT",
    "ProviderConfig",
    "ProviderStore",
    "CredentialStore",
    "InMemoryProviderStore",
    "EnvCredentialStore",
    "env_var_for",
    "get_api_key",
    "custom_model_id",
    "parse_model_id",
]
