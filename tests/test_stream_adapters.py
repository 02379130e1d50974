"""Streaming behaviour of the four format adapters against recorded stream shapes."""

import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest
from openai import AsyncOpenAI

from fakes import (
    FakeAsyncStream,
    Recorder,
    anthropic_message,
    build_anthropic_client,
    build_chat_client,
    build_responses_client,
    chat_chunk,
    event,
    function_call_item,
    tool_fragment,
)

from llm_relay.providers.anthropic import AnthropicMessagesStreamAdapter
from llm_relay.providers.google_interactions import GoogleInteractionsStreamAdapter
from llm_relay.providers.openai import OpenAIChatStreamAdapter
from llm_relay.providers.openai_responses import OpenAIResponsesStreamAdapter
from llm_relay.types import StreamRequest, ToolDefinition, UserMessage

WEATHER_TOOL = ToolDefinition(
    name="get_weather",
    description="Get the current weather",
    input_schema={"type": "object", "properties": {"city": {"type": "string"}}},
)


def _request(text="2+2?", **kwargs):
    kwargs.setdefault("model", "test-model")
    return StreamRequest(conversation=[UserMessage(text=text)], **kwargs)


def _stream(adapter, request):
    recorder = Recorder()
    asyncio.run(adapter.stream_response(request, **recorder.callbacks))
    return recorder


class TestOpenAIChatStream:
    def test_text_only(self):
        client, stream = build_chat_client([chat_chunk("4"), chat_chunk(finish_reason="stop")])
        recorder = _stream(OpenAIChatStreamAdapter.from_client(client), _request())

        assert recorder.events == [("chunk", "4"), ("complete", (None, None))]
        assert stream.closed

    def test_request_shape(self):
        client, _ = build_chat_client([chat_chunk("ok")])
        adapter = OpenAIChatStreamAdapter.from_client(client)
        _stream(adapter, _request(tools=[WEATHER_TOOL], system_prompt="Be brief", max_tokens=64))

        call = client.chat.completions.calls[0]
        assert call["model"] == "test-model"
        assert call["stream"] is True
        assert call["max_tokens"] == 64
        assert call["messages"][0] == {"role": "system", "content": "Be brief"}
        assert call["tools"][0]["function"]["name"] == "get_weather"

    def test_no_tools_key_without_tools(self):
        client, _ = build_chat_client([chat_chunk("ok")])
        _stream(OpenAIChatStreamAdapter.from_client(client), _request())
        assert "tools" not in client.chat.completions.calls[0]

    def test_tool_calls_aggregated_at_end(self):
        chunks = [
            chat_chunk("Checking"),
            chat_chunk(tool_calls=[tool_fragment(0, id="call_1", name="get_weather", arguments="")]),
            chat_chunk(tool_calls=[tool_fragment(0, arguments='{"city":')]),
            chat_chunk(tool_calls=[tool_fragment(0, arguments=' "Paris"}')]),
            chat_chunk(finish_reason="tool_calls"),
        ]
        client, _ = build_chat_client(chunks)
        recorder = _stream(OpenAIChatStreamAdapter.from_client(client), _request(tools=[WEATHER_TOOL]))

        assert recorder.chunks == ["Checking"]
        (kind, (reason, calls)), = recorder.terminals
        assert kind == "complete"
        assert reason is None
        assert len(calls) == 1
        assert calls[0].id == "call_1"
        assert calls[0].namespaced_tool_name == "get_weather"
        assert calls[0].args == {"city": "Paris"}
        assert calls[0].tool_metadata.input_schema == WEATHER_TOOL.input_schema

    def test_tool_fragments_ignored_without_tools(self):
        chunks = [chat_chunk(tool_calls=[tool_fragment(0, id="call_1", name="f", arguments="{}")])]
        client, _ = build_chat_client(chunks)
        recorder = _stream(OpenAIChatStreamAdapter.from_client(client), _request())
        assert recorder.terminals == [("complete", (None, None))]

    def test_invalid_arguments_reported_as_error(self):
        chunks = [chat_chunk(tool_calls=[tool_fragment(0, id="call_1", name="get_weather", arguments="{oops")])]
        client, _ = build_chat_client(chunks)
        recorder = _stream(OpenAIChatStreamAdapter.from_client(client), _request(tools=[WEATHER_TOOL]))

        (kind, message), = recorder.terminals
        assert kind == "error"
        assert "get_weather" in message

    def test_failure_mid_stream(self):
        client, _ = build_chat_client([chat_chunk("par")], fail_with=RuntimeError("connection reset"))
        recorder = _stream(OpenAIChatStreamAdapter.from_client(client), _request())

        assert recorder.chunks == ["par"]
        assert recorder.terminals == [("error", "RuntimeError: connection reset")]

    def test_empty_model_fails_before_request(self):
        client, _ = build_chat_client([chat_chunk("x")])
        recorder = _stream(OpenAIChatStreamAdapter.from_client(client), _request(model="  "))

        assert recorder.terminals == [("error", "Model identifier is empty")]
        assert client.chat.completions.calls == []

    def test_callback_exception_routed_to_on_error(self):
        client, _ = build_chat_client([chat_chunk("a"), chat_chunk("b")])
        errors = []

        def on_chunk(text):
            raise ValueError("consumer broke")

        asyncio.run(
            OpenAIChatStreamAdapter.from_client(client).stream_response(
                _request(),
                on_chunk=on_chunk,
                on_complete=lambda *args: errors.append("completed"),
                on_error=errors.append,
            )
        )
        assert errors == ["ValueError: consumer broke"]

    def test_cancellation_fires_no_terminal(self):
        class HangingStream(FakeAsyncStream):
            async def __anext__(self):
                await asyncio.Event().wait()

        stream = HangingStream([])
        client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=_returning(stream)))
        )
        recorder = Recorder()

        async def run():
            adapter = OpenAIChatStreamAdapter.from_client(client)
            task = asyncio.create_task(adapter.stream_response(_request(), **recorder.callbacks))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert recorder.events == []
        assert stream.closed


def _returning(value):
    async def create(**kwargs):
        return value

    return create


def _sse_body(*payloads):
    lines = [f"data: {json.dumps(p)}\n\n" for p in payloads]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def _chunk_payload(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "gpt-test",
        "choices": [{"index": 0, "delta": {"content": content}, "finish_reason": None}],
    }


class TestOpenAIChatOverHTTP:
    """Drives a real AsyncOpenAI client over an in-memory transport."""

    def _adapter(self, handler):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = AsyncOpenAI(
            api_key="sk-test",
            base_url="https://llm.example.test/v1",
            http_client=http_client,
            max_retries=0,
        )
        return OpenAIChatStreamAdapter.from_client(client)

    def test_streams_text(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=_sse_body(_chunk_payload("Hel"), _chunk_payload("lo")),
            )

        recorder = _stream(self._adapter(handler), _request())

        assert recorder.events == [("chunk", "Hel"), ("chunk", "lo"), ("complete", (None, None))]
        assert seen[0].url.path == "/v1/chat/completions"
        assert seen[0].headers["authorization"] == "Bearer sk-test"
        assert json.loads(seen[0].content)["stream"] is True

    def test_rate_limit_reported(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": {"message": "slow down"}})

        recorder = _stream(self._adapter(handler), _request())

        (kind, message), = recorder.terminals
        assert kind == "error"
        assert "429" in message
        assert recorder.chunks == []


class TestOpenAIResponsesStream:
    def test_text_and_interleaved_tool_calls(self):
        events = [
            event("response.created"),
            event("response.output_text.delta", delta="Let me "),
            event("response.output_text.delta", delta="check."),
            event("response.output_item.added", item=function_call_item("fc_1", "call_1", "get_weather")),
            event("response.output_item.added", item=function_call_item("fc_2", "call_2", "get_weather")),
            event("response.function_call_arguments.delta", item_id="fc_2", delta='{"city": "Rome"}'),
            event("response.function_call_arguments.delta", item_id="fc_1", delta='{"city":'),
            event("response.function_call_arguments.delta", item_id="fc_1", delta=' "Paris"}'),
            event("response.function_call_arguments.delta", item_id="fc_9", delta="ignored"),
            event("response.output_item.done", item=function_call_item("fc_2", "call_2", "get_weather")),
            event("response.function_call_arguments.done", item_id="fc_1", arguments='{"city": "Paris"}'),
            event("response.output_item.done", item=function_call_item("fc_1", "call_1", "get_weather")),
            event(
                "response.completed",
                response=SimpleNamespace(status="completed", incomplete_details=None),
            ),
        ]
        client, stream = build_responses_client(events)
        adapter = OpenAIResponsesStreamAdapter.from_client(client)
        recorder = _stream(adapter, _request(tools=[WEATHER_TOOL], system_prompt="sys"))

        assert recorder.chunks == ["Let me ", "check."]
        (kind, (reason, calls)), = recorder.terminals
        assert kind == "complete"
        assert reason == "completed"
        assert [c.id for c in calls] == ["call_1", "call_2"]
        assert [c.args for c in calls] == [{"city": "Paris"}, {"city": "Rome"}]
        assert calls[0].tool_metadata is not None
        assert stream.closed

        request = client.responses.calls[0]
        assert request["instructions"] == "sys"
        assert request["stream"] is True
        assert request["tools"][0]["name"] == "get_weather"

    def test_incomplete_reason(self):
        events = [
            event("response.output_text.delta", delta="partial"),
            event(
                "response.incomplete",
                response=SimpleNamespace(
                    status="incomplete",
                    incomplete_details=SimpleNamespace(reason="max_output_tokens"),
                ),
            ),
        ]
        client, _ = build_responses_client(events)
        recorder = _stream(OpenAIResponsesStreamAdapter.from_client(client), _request())
        assert recorder.terminals == [("complete", ("max_output_tokens", None))]

    def test_failed_response(self):
        events = [
            event(
                "response.failed",
                response=SimpleNamespace(error=SimpleNamespace(message="model overloaded")),
            )
        ]
        client, _ = build_responses_client(events)
        recorder = _stream(OpenAIResponsesStreamAdapter.from_client(client), _request())
        assert recorder.terminals == [("error", "model overloaded")]

    def test_error_event(self):
        client, _ = build_responses_client([event("error", message="bad request")])
        recorder = _stream(OpenAIResponsesStreamAdapter.from_client(client), _request())
        assert recorder.terminals == [("error", "bad request")]

    def test_invalid_arguments_reported_as_error(self):
        events = [
            event("response.output_item.added", item=function_call_item("fc_1", "call_1", "get_weather")),
            event("response.function_call_arguments.delta", item_id="fc_1", delta='{"city": '),
            event("response.function_call_arguments.done", item_id="fc_1", arguments='{"city": '),
            event("response.output_item.done", item=function_call_item("fc_1", "call_1", "get_weather")),
            event("response.output_text.delta", delta="never delivered"),
            event("response.completed", response=SimpleNamespace(status="completed", incomplete_details=None)),
        ]
        client, _ = build_responses_client(events)
        recorder = _stream(
            OpenAIResponsesStreamAdapter.from_client(client), _request(tools=[WEATHER_TOOL])
        )

        assert recorder.chunks == []
        (kind, message), = recorder.terminals
        assert kind == "error"
        assert "get_weather" in message


class TestAnthropicMessagesStream:
    def test_tool_use(self):
        events = [
            event("message_start"),
            event("text", text="I'll check the weather."),
            event("input_json", partial_json='{"location"'),
            event("message_stop"),
        ]
        final = anthropic_message(
            [
                SimpleNamespace(type="text", text="I'll check the weather."),
                SimpleNamespace(
                    type="tool_use", id="toolu_1", name="get_weather", input={"location": "Paris"}
                ),
            ],
            stop_reason="tool_use",
        )
        client, _ = build_anthropic_client(events, final)
        adapter = AnthropicMessagesStreamAdapter.from_client(client)
        recorder = _stream(adapter, _request("weather in Paris", tools=[WEATHER_TOOL]))

        assert recorder.chunks == ["I'll check the weather."]
        (kind, (reason, calls)), = recorder.terminals
        assert kind == "complete"
        assert reason == "tool_use"
        assert len(calls) == 1
        assert calls[0].id == "toolu_1"
        assert calls[0].namespaced_tool_name == "get_weather"
        assert calls[0].args == {"location": "Paris"}
        assert calls[0].tool_metadata.description == "Get the current weather"

    def test_request_shape(self):
        final = anthropic_message([SimpleNamespace(type="text", text="4")])
        client, _ = build_anthropic_client([event("text", text="4")], final)
        recorder = _stream(
            AnthropicMessagesStreamAdapter.from_client(client),
            _request(system_prompt="Be brief"),
        )

        assert recorder.events == [("chunk", "4"), ("complete", ("end_turn", None))]
        call = client.messages.calls[0]
        assert call["max_tokens"] == 4096
        assert call["system"] == "Be brief"
        assert "tools" not in call
        assert call["messages"] == [{"role": "user", "content": [{"type": "text", "text": "2+2?"}]}]

    def test_stream_failure(self):
        final = anthropic_message([])
        client, _ = build_anthropic_client(
            [event("text", text="Hi")], final, fail_with=TimeoutError("read timed out")
        )
        recorder = _stream(AnthropicMessagesStreamAdapter.from_client(client), _request())

        assert recorder.chunks == ["Hi"]
        (kind, message), = recorder.terminals
        assert kind == "error"
        assert "read timed out" in message


def _interactions_records():
    return [
        {"event_type": "interaction.start", "interaction": {"id": "int_1"}},
        {"event_type": "content.delta", "delta": {"type": "text", "text": "It is "}},
        {"event_type": "content.delta", "delta": {"type": "thought", "text": "hidden"}},
        {"event_type": "content.delta", "delta": {"type": "text", "text": "sunny."}},
        {
            "event_type": "interaction.complete",
            "interaction": {
                "status": "completed",
                "outputs": [
                    {"type": "text", "text": "It is sunny."},
                    {"type": "function_call", "id": "fc_1", "name": "get_weather", "arguments": {"city": "Paris"}},
                    {"type": "function_call", "id": "fc_2", "name": "get_weather", "arguments": '{"city": "Rome"}'},
                ],
            },
        },
    ]


def _interactions_body(records):
    lines = ["event: message\n", ": ping\n"]
    for record in records:
        lines.append(f"data: {json.dumps(record)}\n\n")
    lines.append("data: {not json}\n\n")
    return "".join(lines).encode("utf-8")


class TestGoogleInteractionsStream:
    def _adapter(self, handler, **kwargs):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return GoogleInteractionsStreamAdapter.from_client(client, api_key="g-key", **kwargs)

    def test_text_and_tool_calls(self):
        seen = []
        body = _interactions_body(_interactions_records())

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

        adapter = self._adapter(handler, base_url="https://genai.example.test/v1beta/")
        recorder = _stream(
            adapter, _request("Weather?", tools=[WEATHER_TOOL], system_prompt="sys", max_tokens=10)
        )

        assert recorder.chunks == ["It is ", "sunny."]
        (kind, (reason, calls)), = recorder.terminals
        assert kind == "complete"
        assert reason == "completed"
        assert [c.id for c in calls] == ["fc_1", "fc_2"]
        assert [c.args for c in calls] == [{"city": "Paris"}, {"city": "Rome"}]

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url).startswith("https://genai.example.test/v1beta/interactions")
        assert request.url.params["alt"] == "sse"
        assert request.headers["x-goog-api-key"] == "g-key"
        assert "authorization" not in request.headers
        payload = json.loads(request.content)
        assert payload["model"] == "test-model"
        assert payload["stream"] is True
        assert payload["system_instruction"] == "sys"
        assert payload["generation_config"] == {"max_output_tokens": 10}
        assert payload["tools"][0]["name"] == "get_weather"
        assert payload["input"] == [{"role": "user", "content": [{"type": "text", "text": "Weather?"}]}]

    def test_records_split_across_reads(self):
        body = _interactions_body(_interactions_records())

        async def pieces():
            for i in range(0, len(body), 5):
                yield body[i:i + 5]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=pieces())

        recorder = _stream(self._adapter(handler), _request(tools=[WEATHER_TOOL]))
        assert recorder.chunks == ["It is ", "sunny."]
        assert recorder.terminals[0][0] == "complete"

    def test_trailing_record_without_newline(self):
        delta = {"event_type": "content.delta", "delta": {"type": "text", "text": "end"}}
        done = {"event_type": "interaction.complete", "interaction": {"status": "completed"}}
        body = f"data: {json.dumps(delta)}\n\ndata: {json.dumps(done)}".encode("utf-8")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        recorder = _stream(self._adapter(handler), _request())
        assert recorder.events == [("chunk", "end"), ("complete", ("completed", None))]

    def test_stream_ending_without_complete_record_is_an_error(self):
        record = {"event_type": "content.delta", "delta": {"type": "text", "text": "par"}}
        body = f"data: {json.dumps(record)}\n\n".encode("utf-8")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        recorder = _stream(self._adapter(handler), _request(tools=[WEATHER_TOOL]))
        assert recorder.events == [
            ("chunk", "par"),
            ("error", "Stream ended before interaction.complete"),
        ]

    def test_invalid_function_call_arguments(self):
        body = _interactions_body(
            [
                {"event_type": "content.delta", "delta": {"type": "text", "text": "a"}},
                {
                    "event_type": "interaction.complete",
                    "interaction": {
                        "status": "completed",
                        "outputs": [
                            {"type": "function_call", "id": "fc_1", "name": "get_weather", "arguments": "{oops"}
                        ],
                    },
                },
            ]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        recorder = _stream(self._adapter(handler), _request(tools=[WEATHER_TOOL]))

        assert recorder.chunks == ["a"]
        (kind, message), = recorder.terminals
        assert kind == "error"
        assert "get_weather" in message

    def test_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="API key not valid")

        recorder = _stream(self._adapter(handler), _request())
        assert recorder.terminals == [("error", "HTTP 403: API key not valid")]
        assert recorder.chunks == []

    def test_error_record(self):
        body = _interactions_body(
            [
                {"event_type": "content.delta", "delta": {"type": "text", "text": "a"}},
                {"event_type": "error", "error": {"message": "quota exhausted"}},
            ]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        recorder = _stream(self._adapter(handler), _request())
        assert recorder.events == [("chunk", "a"), ("error", "quota exhausted")]

    def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        recorder = _stream(self._adapter(handler), _request())
        (kind, message), = recorder.terminals
        assert kind == "error"
        assert "connection refused" in message

    def test_default_endpoint(self):
        adapter = GoogleInteractionsStreamAdapter(api_key="k")
        assert adapter.endpoint == "https://generativelanguage.googleapis.com/v1beta/interactions"
        asyncio.run(adapter.aclose())

    def test_from_client_type_check(self):
        with pytest.raises(TypeError):
            GoogleInteractionsStreamAdapter.from_client(object(), api_key="k")
