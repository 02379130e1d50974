"""Stream one turn from every configured provider through the same callbacks."""

import asyncio
import logging

from llm_relay import (
    ApiFormat,
    EnvCredentialStore,
    InMemoryProviderStore,
    ProviderConfig,
    UserMessage,
    custom_model_id,
    stream_for_model,
)

logging.basicConfig(level=logging.INFO)

# Keys are read from LLM_RELAY_<PROVIDER_ID>_API_KEY (or a .env file)
PROVIDERS = InMemoryProviderStore(
    {
        "openai": ProviderConfig("openai", "OpenAI", "https://api.openai.com/v1"),
        "openai-responses": ProviderConfig(
            "openai-responses", "OpenAI Responses", "https://api.openai.com/v1",
            api_format=ApiFormat.OPENAI_RESPONSES,
        ),
        "anthropic": ProviderConfig(
            "anthropic", "Anthropic", "https://api.anthropic.com",
            api_format=ApiFormat.ANTHROPIC_MESSAGES,
        ),
        "gemini": ProviderConfig(
            "gemini", "Gemini", "https://generativelanguage.googleapis.com/v1beta",
            api_format=ApiFormat.GOOGLE_INTERACTIONS,
        ),
    }
)

MODELS = [
    custom_model_id("openai", "gpt-4.1-nano"),
    custom_model_id("openai-responses", "gpt-4.1-nano"),
    custom_model_id("anthropic", "claude-3-5-haiku-20241022"),
    custom_model_id("gemini", "gemini-2.5-flash"),
]


async def stream_example(model_id: str, credentials: EnvCredentialStore) -> None:
    print(f"\n=== {model_id} ===")
    conversation = [UserMessage(text="What is the capital of Italy? Answer in one sentence.")]

    def on_complete(finish_reason, tool_calls):
        print(f"\n✅ Done (finish_reason={finish_reason}, tool_calls={tool_calls})")

    def on_error(message):
        print(f"\n❌ Error: {message}")

    await stream_for_model(
        model_id,
        conversation,
        providers=PROVIDERS,
        credentials=credentials,
        system_prompt="You are a helpful assistant.",
        max_tokens=150,
        on_chunk=lambda text: print(text, end="", flush=True),
        on_complete=on_complete,
        on_error=on_error,
    )


async def main():
    credentials = EnvCredentialStore()
    for model_id in MODELS:
        await stream_example(model_id, credentials)


if __name__ == "__main__":
    asyncio.run(main())
