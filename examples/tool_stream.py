from __future__ import annotations

import argparse
import asyncio
import logging

from llm_relay import (
    AssistantMessage,
    ProviderConfig,
    StreamRequest,
    ToolCall,
    ToolDefinition,
    ToolResult,
    ToolResultsMessage,
    UserMessage,
    stream_response,
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

WEATHER_TOOL = ToolDefinition(
    name="get_weather",
    description="Get the current weather in a given location",
    input_schema={
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "City and state, e.g. San Francisco, CA",
            },
            "unit": {
                "type": "string",
                "enum": ["celsius", "fahrenheit"],
            },
        },
        "required": ["location"],
    },
)


def get_weather(location: str, unit: str = "celsius") -> str:
    """Toy implementation; a real tool would call a weather API."""
    return f"It is 21 degrees {unit} and sunny in {location}."


async def run_turn(provider: ProviderConfig, request: StreamRequest) -> tuple[str, list[ToolCall] | None]:
    text: list[str] = []
    result: dict[str, object] = {}

    def on_complete(finish_reason, tool_calls):
        logger.info("finish_reason=%s", finish_reason)
        result["tool_calls"] = tool_calls

    def on_error(message):
        result["error"] = message

    await stream_response(
        provider,
        request,
        on_chunk=text.append,
        on_complete=on_complete,
        on_error=on_error,
    )
    if "error" in result:
        raise SystemExit(f"❌ {result['error']}")
    return "".join(text), result.get("tool_calls")  # type: ignore[return-value]


async def main(provider: ProviderConfig, model: str) -> None:
    conversation: list = [UserMessage(text="What's the weather like in Paris?")]

    text, tool_calls = await run_turn(
        provider, StreamRequest(conversation, model, tools=[WEATHER_TOOL])
    )
    print(f"🤖 {text}")
    if not tool_calls:
        return

    results = []
    for call in tool_calls:
        print(f"🔧 {call.namespaced_tool_name}({call.args})")
        results.append(ToolResult(call.id, call.namespaced_tool_name, get_weather(**call.args)))

    conversation += [
        AssistantMessage(text=text or None, tool_calls=tuple(tool_calls)),
        ToolResultsMessage(results=tuple(results)),
    ]
    text, _ = await run_turn(provider, StreamRequest(conversation, model, tools=[WEATHER_TOOL]))
    print(f"🤖 {text}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Two-turn tool use over any API format")
    parser.add_argument("--provider-id", default="openai")
    parser.add_argument("--base-url", default="https://api.openai.com/v1")
    parser.add_argument("--api-format", default=None)
    parser.add_argument("--model", default="gpt-4.1-nano")
    args = parser.parse_args()

    asyncio.run(
        main(
            ProviderConfig(args.provider_id, args.provider_id, args.base_url, args.api_format),
            args.model,
        )
    )
