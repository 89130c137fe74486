"""Tests for the Ollama backend client."""

import json
from decimal import Decimal

import httpx
import pytest

from relay.errors import BackendInvocationError
from relay.models.ir import (
    Finish,
    GenerationRequest,
    NamedToolChoice,
    TextDelta,
    TextTurn,
    ToolCallEvent,
    ToolCallTurn,
    ToolConfig,
    ToolInvocation,
    ToolResultTurn,
    ToolSpec,
)
from relay.services.backend import (
    OllamaBackend,
    build_payload,
    map_finish_reason,
    parse_completion,
)

BASE_URL = "http://ollama.test/v1"


def _request(**kwargs) -> GenerationRequest:
    kwargs.setdefault("model", "llama3.2:3b")
    kwargs.setdefault("messages", [TextTurn(role="user", content="hi")])
    return GenerationRequest(**kwargs)


def _sse_body(*chunks: dict, done: bool = True) -> bytes:
    lines = [f"data: {json.dumps(chunk)}\n\n" for chunk in chunks]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def _delta_chunk(delta: dict, finish_reason: str | None = None) -> dict:
    return {
        "id": "chatcmpl-ollama",
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def _backend(handler) -> OllamaBackend:
    return OllamaBackend(base_url=BASE_URL, transport=httpx.MockTransport(handler))


async def _collect(backend: OllamaBackend, request: GenerationRequest) -> list:
    return [event async for event in backend.stream(request)]


class TestMapFinishReason:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("stop", "stop"),
            ("length", "length"),
            ("max_tokens", "length"),
            ("tool_calls", "tool_calls"),
            ("function_call", "tool_calls"),
            (None, "stop"),
            ("content_filter", "stop"),
        ],
    )
    def test_mapping(self, raw, expected):
        assert map_finish_reason(raw) == expected

    def test_tool_calls_take_precedence(self):
        assert map_finish_reason("length", has_tool_calls=True) == "tool_calls"
        assert map_finish_reason("stop", has_tool_calls=True) == "tool_calls"


class TestBuildPayload:
    def test_minimal_payload_omits_optional_fields(self):
        payload = build_payload(_request(), stream=False)
        assert payload == {
            "model": "llama3.2:3b",
            "messages": [{"role": "user", "content": "hi"}],
            "stream": False,
        }

    def test_sampling_fields_included_when_set(self):
        payload = build_payload(_request(temperature=0.0, max_tokens=10), stream=True)
        assert payload["temperature"] == 0.0
        assert payload["max_tokens"] == 10
        assert payload["stream"] is True

    def test_tool_turns_reencode_arguments(self):
        messages = [
            TextTurn(role="user", content="weather?"),
            ToolCallTurn(
                tool_calls=(ToolInvocation(id="call_1", name="get_weather", arguments={"c": 1}),)
            ),
            ToolResultTurn(tool_call_id="call_1", content="sunny"),
        ]
        payload = build_payload(_request(messages=messages), stream=False)
        assistant, tool = payload["messages"][1], payload["messages"][2]
        assert assistant["role"] == "assistant"
        assert assistant["content"] is None
        assert assistant["tool_calls"][0]["id"] == "call_1"
        assert json.loads(assistant["tool_calls"][0]["function"]["arguments"]) == {"c": 1}
        assert tool == {"role": "tool", "tool_call_id": "call_1", "content": "sunny"}

    def test_tool_turn_arguments_keep_exact_numbers_and_text(self):
        arguments = {"city": "Zürich", "x": Decimal("1E+400")}
        messages = [
            ToolCallTurn(tool_calls=(ToolInvocation(id="call_1", name="f", arguments=arguments),))
        ]
        payload = build_payload(_request(messages=messages), stream=False)
        raw = payload["messages"][0]["tool_calls"][0]["function"]["arguments"]

        assert "Zürich" in raw
        assert "Infinity" not in raw
        assert json.loads(raw, parse_float=Decimal) == arguments

    def test_tools_and_named_choice(self):
        config = ToolConfig(
            tools={"get_weather": ToolSpec(name="get_weather", parameters={"type": "object"})},
            tool_choice=NamedToolChoice(name="get_weather"),
        )
        payload = build_payload(_request(tools=config), stream=False)
        assert payload["tools"] == [
            {"type": "function", "function": {"name": "get_weather", "parameters": {"type": "object"}}}
        ]
        assert payload["tool_choice"] == {"type": "function", "function": {"name": "get_weather"}}

    def test_plain_choice_passed_through(self):
        config = ToolConfig(
            tools={"t": ToolSpec(name="t", parameters={}, description="d")},
            tool_choice="none",
        )
        payload = build_payload(_request(tools=config), stream=False)
        assert payload["tool_choice"] == "none"
        assert payload["tools"][0]["function"]["description"] == "d"


class TestParseCompletion:
    def test_text_result(self):
        result = parse_completion(
            {
                "choices": [
                    {"message": {"role": "assistant", "content": "Hi"}, "finish_reason": "stop"}
                ],
                "usage": {"prompt_tokens": 3, "completion_tokens": 1},
            }
        )
        assert result.text == "Hi"
        assert result.tool_calls == []
        assert result.finish_reason == "stop"
        assert result.prompt_tokens == 3
        assert result.completion_tokens == 1

    def test_tool_calls_are_parsed(self):
        result = parse_completion(
            {
                "choices": [
                    {
                        "message": {
                            "content": "",
                            "tool_calls": [
                                {
                                    "id": "call_x",
                                    "function": {"name": "f", "arguments": '{"a": [1, 2]}'},
                                }
                            ],
                        },
                        "finish_reason": "tool_calls",
                    }
                ]
            }
        )
        assert result.tool_calls == [ToolInvocation(id="call_x", name="f", arguments={"a": [1, 2]})]
        assert result.prompt_tokens is None

    def test_missing_tool_call_id_is_generated(self):
        result = parse_completion(
            {"choices": [{"message": {"tool_calls": [{"function": {"name": "f"}}]}}]}
        )
        assert result.tool_calls[0].id.startswith("call_")
        assert result.tool_calls[0].arguments == {}

    def test_structured_arguments_accepted(self):
        result = parse_completion(
            {
                "choices": [
                    {"message": {"tool_calls": [{"function": {"name": "f", "arguments": {"x": 1}}}]}}
                ]
            }
        )
        assert result.tool_calls[0].arguments == {"x": 1}

    def test_error_payload_raises(self):
        with pytest.raises(BackendInvocationError, match="model not found"):
            parse_completion({"error": {"message": "model not found"}})

    def test_no_choices_raises(self):
        with pytest.raises(BackendInvocationError, match="no choices"):
            parse_completion({"choices": []})

    def test_huge_exponent_keeps_exact_value(self):
        result = parse_completion(
            {
                "choices": [
                    {"message": {"tool_calls": [{"function": {"name": "f", "arguments": '{"x": 1e400}'}}]}}
                ]
            }
        )
        assert result.tool_calls[0].arguments == {"x": Decimal("1e400")}

    def test_structured_non_finite_arguments_raise(self):
        data = {
            "choices": [
                {
                    "message": {
                        "tool_calls": [{"function": {"name": "f", "arguments": {"x": float("inf")}}}]
                    }
                }
            ]
        }
        with pytest.raises(BackendInvocationError, match="invalid JSON arguments for tool 'f'"):
            parse_completion(data)

    def test_nan_token_in_arguments_raises(self):
        data = {
            "choices": [
                {"message": {"tool_calls": [{"function": {"name": "f", "arguments": '{"x": NaN}'}}]}}
            ]
        }
        with pytest.raises(BackendInvocationError, match="NaN is not a valid JSON value"):
            parse_completion(data)


class TestGenerate:
    async def test_posts_payload_and_parses_result(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": "Hello"}, "finish_reason": "length"}],
                    "usage": {"prompt_tokens": 5, "completion_tokens": 7},
                },
            )

        backend = _backend(handler)
        result = await backend.generate(_request(max_tokens=7))
        await backend.close()

        assert captured["url"] == f"{BASE_URL}/chat/completions"
        assert captured["body"]["stream"] is False
        assert captured["body"]["max_tokens"] == 7
        assert result.text == "Hello"
        assert result.finish_reason == "length"

    async def test_http_error_raises_502(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": {"message": "model 'x' not found"}})

        backend = _backend(handler)
        with pytest.raises(BackendInvocationError) as exc_info:
            await backend.generate(_request())
        assert exc_info.value.status_code == 502
        assert "404" in exc_info.value.message
        assert "model 'x' not found" in exc_info.value.message

    async def test_unreachable_backend_raises_503(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        backend = _backend(handler)
        with pytest.raises(BackendInvocationError) as exc_info:
            await backend.generate(_request())
        assert exc_info.value.status_code == 503

    async def test_invalid_json_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"not json")

        backend = _backend(handler)
        with pytest.raises(BackendInvocationError, match="invalid JSON"):
            await backend.generate(_request())


class TestStream:
    async def test_text_deltas_then_finish(self):
        body = _sse_body(
            _delta_chunk({"role": "assistant", "content": "Hel"}),
            _delta_chunk({"content": "lo"}),
            _delta_chunk({}, finish_reason="stop"),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(
                200, content=body, headers={"Content-Type": "text/event-stream"}
            )

        events = await _collect(_backend(handler), _request())
        assert events == [TextDelta(text="Hel"), TextDelta(text="lo"), Finish(reason="stop")]

    async def test_missing_finish_reason_synthesizes_stop(self):
        body = _sse_body(_delta_chunk({"content": "x"}), done=False)

        events = await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())
        assert events[-1] == Finish(reason="stop")

    async def test_length_finish_is_reported_raw(self):
        body = _sse_body(_delta_chunk({"content": "x"}, finish_reason="length"))

        events = await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())
        assert events[-1] == Finish(reason="length")

    async def test_tool_call_fragments_are_assembled(self):
        body = _sse_body(
            _delta_chunk(
                {
                    "tool_calls": [
                        {
                            "index": 0,
                            "id": "call_a",
                            "type": "function",
                            "function": {"name": "get_weather", "arguments": '{"ci'},
                        }
                    ]
                }
            ),
            _delta_chunk({"tool_calls": [{"index": 0, "function": {"arguments": 'ty": "Rome"}'}}]}),
            _delta_chunk(
                {
                    "tool_calls": [
                        {"index": 1, "id": "call_b", "function": {"name": "get_time", "arguments": "{}"}}
                    ]
                }
            ),
            _delta_chunk({}, finish_reason="tool_calls"),
        )

        events = await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())
        assert events == [
            ToolCallEvent(
                invocation=ToolInvocation(id="call_a", name="get_weather", arguments={"city": "Rome"})
            ),
            ToolCallEvent(invocation=ToolInvocation(id="call_b", name="get_time", arguments={})),
            Finish(reason="tool_calls"),
        ]

    async def test_tool_call_fragments_without_index(self):
        body = _sse_body(
            _delta_chunk({"tool_calls": [{"id": "call_a", "function": {"name": "a", "arguments": "{}"}}]}),
            _delta_chunk({"tool_calls": [{"id": "call_b", "function": {"name": "b", "arguments": "{}"}}]}),
        )

        events = await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())
        ids = [e.invocation.id for e in events if isinstance(e, ToolCallEvent)]
        assert ids == ["call_a", "call_b"]

    async def test_http_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with pytest.raises(BackendInvocationError, match="HTTP 500"):
            await _collect(_backend(handler), _request())

    async def test_unreachable_raises_503(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(BackendInvocationError) as exc_info:
            await _collect(_backend(handler), _request())
        assert exc_info.value.status_code == 503

    async def test_malformed_chunk_raises_after_earlier_events(self):
        body = _sse_body(_delta_chunk({"content": "partial"}), done=False) + b"data: {broken\n\n"

        events = []
        backend = _backend(lambda r: httpx.Response(200, content=body))
        with pytest.raises(BackendInvocationError, match="malformed"):
            async for event in backend.stream(_request()):
                events.append(event)
        assert events == [TextDelta(text="partial")]

    async def test_error_chunk_raises(self):
        body = _sse_body({"error": {"message": "out of memory"}}, done=False)

        with pytest.raises(BackendInvocationError, match="out of memory"):
            await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())

    async def test_non_data_lines_ignored(self):
        body = b": keep-alive\n\nevent: message\n" + _sse_body(_delta_chunk({"content": "ok"}))

        events = await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())
        assert events == [TextDelta(text="ok"), Finish(reason="stop")]

    async def test_split_huge_exponent_keeps_exact_value(self):
        body = _sse_body(
            _delta_chunk(
                {"tool_calls": [{"index": 0, "id": "call_a", "function": {"name": "f", "arguments": '{"x": 1e'}}]}
            ),
            _delta_chunk({"tool_calls": [{"index": 0, "function": {"arguments": "400}"}}]}),
            _delta_chunk({}, finish_reason="tool_calls"),
        )

        events = await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())
        assert events[0] == ToolCallEvent(
            invocation=ToolInvocation(id="call_a", name="f", arguments={"x": Decimal("1e400")})
        )

    async def test_structured_out_of_range_arguments_raise(self):
        chunk = (
            '{"choices": [{"index": 0, "delta": {"tool_calls": [{"index": 0, "id": "call_a",'
            ' "function": {"name": "f", "arguments": {"x": 1e400}}}]}}]}'
        )
        body = f"data: {chunk}\n\ndata: [DONE]\n\n".encode()

        with pytest.raises(BackendInvocationError, match="invalid JSON arguments for tool 'f'"):
            await _collect(_backend(lambda r: httpx.Response(200, content=body)), _request())
