"""Ollama backend client (generation invoker).

Talks to Ollama's OpenAI-compatible ``/v1/chat/completions`` endpoint.
Assembles the backend request from a :class:`GenerationRequest` and is the
single place where backend output is interpreted into IR results and
stream events.

No call is retried: failures surface as :class:`BackendInvocationError`.
"""

import json
import uuid
from collections.abc import AsyncGenerator
from typing import Any

import httpx
from loguru import logger

from relay.errors import BackendInvocationError
from relay.models.ir import (
    BackendMessage,
    Finish,
    GenerationRequest,
    GenerationResult,
    NamedToolChoice,
    StreamEvent,
    TextDelta,
    TextTurn,
    ToolCallEvent,
    ToolCallTurn,
    ToolConfig,
    ToolInvocation,
    ToolResultTurn,
)
from relay.services.arguments import decode_arguments, encode_arguments

CHAT_COMPLETIONS_PATH = "/chat/completions"

# Raw backend finish conditions, normalized to OpenAI finish_reason values
_TOOL_CALL_FINISH = frozenset({"tool_calls", "tool-calls", "function_call"})
_LENGTH_FINISH = frozenset({"length", "max_tokens"})


def map_finish_reason(raw: str | None, *, has_tool_calls: bool = False) -> str:
    """Map a raw backend finish condition to ``stop``, ``length`` or ``tool_calls``.

    Tool calls take precedence over every other signal. Unknown and
    missing values map to ``stop``.
    """
    if has_tool_calls or raw in _TOOL_CALL_FINISH:
        return "tool_calls"
    if raw in _LENGTH_FINISH:
        return "length"
    return "stop"


def generate_tool_call_id() -> str:
    """Generate an id for a tool call the backend left unnamed."""
    return f"call_{uuid.uuid4().hex[:24]}"


# -- Request assembly ----------------------------------------------------------


def _message_to_wire(message: BackendMessage) -> dict[str, Any]:
    if isinstance(message, TextTurn):
        return {"role": message.role, "content": message.content}
    if isinstance(message, ToolCallTurn):
        return {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": encode_arguments(tc.arguments)},
                }
                for tc in message.tool_calls
            ],
        }
    if isinstance(message, ToolResultTurn):
        return {
            "role": "tool",
            "tool_call_id": message.tool_call_id,
            "content": message.content,
        }
    raise TypeError(f"Unknown backend message type: {type(message).__name__}")


def _tools_to_wire(config: ToolConfig) -> list[dict[str, Any]]:
    tools = []
    for spec in config.tools.values():
        function: dict[str, Any] = {"name": spec.name, "parameters": spec.parameters}
        if spec.description is not None:
            function["description"] = spec.description
        tools.append({"type": "function", "function": function})
    return tools


def build_payload(request: GenerationRequest, *, stream: bool) -> dict[str, Any]:
    """Build the JSON body for the backend chat completions call.

    Optional sampling settings and tool configuration are omitted entirely
    when not set.
    """
    payload: dict[str, Any] = {
        "model": request.model,
        "messages": [_message_to_wire(m) for m in request.messages],
        "stream": stream,
    }
    if request.temperature is not None:
        payload["temperature"] = request.temperature
    if request.max_tokens is not None:
        payload["max_tokens"] = request.max_tokens
    if request.tools is not None:
        payload["tools"] = _tools_to_wire(request.tools)
        choice = request.tools.tool_choice
        if isinstance(choice, NamedToolChoice):
            payload["tool_choice"] = {"type": "function", "function": {"name": choice.name}}
        elif choice is not None:
            payload["tool_choice"] = choice
    return payload


# -- Response interpretation ---------------------------------------------------


def _parse_backend_arguments(raw: Any, name: str) -> Any:
    if raw is None:
        return {}
    try:
        if not isinstance(raw, str):
            # Some backends already send structured arguments
            raw = encode_arguments(raw)
        return decode_arguments(raw)
    except (TypeError, ValueError) as e:
        reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
        raise BackendInvocationError(
            f"Backend returned invalid JSON arguments for tool '{name}': {reason}"
        ) from e


def _parse_tool_call(data: dict[str, Any]) -> ToolInvocation:
    function = data.get("function") or {}
    name = function.get("name") or ""
    return ToolInvocation(
        id=data.get("id") or generate_tool_call_id(),
        name=name,
        arguments=_parse_backend_arguments(function.get("arguments"), name),
    )


def parse_completion(data: dict[str, Any]) -> GenerationResult:
    """Interpret a non-streaming backend response.

    Raises:
        BackendInvocationError: If the response carries an error or no choices
    """
    if "error" in data:
        raise BackendInvocationError(f"Backend reported an error: {_error_message(data)}")

    choices = data.get("choices") or []
    if not choices:
        raise BackendInvocationError("Backend response contained no choices")

    choice = choices[0]
    message = choice.get("message") or {}
    usage = data.get("usage") or {}

    return GenerationResult(
        text=message.get("content") or "",
        tool_calls=[_parse_tool_call(tc) for tc in message.get("tool_calls") or []],
        finish_reason=choice.get("finish_reason"),
        prompt_tokens=usage.get("prompt_tokens"),
        completion_tokens=usage.get("completion_tokens"),
    )


def _error_message(data: Any) -> str:
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error if error is not None else data)


def _describe_status_error(response: httpx.Response) -> str:
    try:
        detail = _error_message(response.json())
    except ValueError:
        detail = response.text[:500]
    return f"Backend returned HTTP {response.status_code}: {detail}"


class _ToolCallAccumulator:
    """Reassembles streamed tool-call fragments, keyed by backend index.

    A call is complete once a fragment for a different index arrives or the
    stream finishes.
    """

    def __init__(self) -> None:
        self._pending: dict[int, dict[str, Any]] = {}
        self._current: int | None = None

    def add(self, fragment: dict[str, Any]) -> list[ToolInvocation]:
        index = self._index_for(fragment)
        completed: list[ToolInvocation] = []
        if self._current is not None and index != self._current:
            completed = self._drain(self._current)
        self._current = index

        entry = self._pending.setdefault(index, {"id": None, "name": "", "arguments": []})
        if fragment.get("id"):
            entry["id"] = fragment["id"]
        function = fragment.get("function") or {}
        if function.get("name"):
            entry["name"] += function["name"]
        arguments = function.get("arguments")
        if isinstance(arguments, str):
            entry["arguments"].append(arguments)
        elif arguments is not None:
            entry["structured"] = arguments
        return completed

    def _index_for(self, fragment: dict[str, Any]) -> int:
        index = fragment.get("index")
        if isinstance(index, int):
            return index
        if self._current is None:
            return 0
        # Without an index, a new id marks the start of the next call
        current = self._pending.get(self._current)
        new_id = fragment.get("id")
        if current is not None and new_id and current["id"] not in (None, new_id):
            return self._current + 1
        return self._current

    def flush(self) -> list[ToolInvocation]:
        completed: list[ToolInvocation] = []
        for index in list(self._pending):
            completed.extend(self._drain(index))
        self._current = None
        return completed

    def _drain(self, index: int) -> list[ToolInvocation]:
        entry = self._pending.pop(index, None)
        if entry is None:
            return []
        raw = entry.get("structured", "".join(entry["arguments"]))
        return [
            ToolInvocation(
                id=entry["id"] or generate_tool_call_id(),
                name=entry["name"],
                arguments=_parse_backend_arguments(raw, entry["name"]),
            )
        ]


def _sse_data(line: str) -> str | None:
    line = line.strip()
    if not line.startswith("data:"):
        return None
    return line[5:].strip()


class OllamaBackend:
    """Generation backend reached over Ollama's OpenAI-compatible API.

    One instance is shared by all requests; the underlying ``httpx``
    connection pool is safe for concurrent use.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 900.0,
        connect_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the backend client.

        Args:
            base_url: API base URL (e.g. http://localhost:11434/v1)
            timeout: Read timeout in seconds for generation calls
            connect_timeout: Seconds allowed to establish a connection
            transport: Optional custom transport (used by tests)
        """
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers={"Content-Type": "application/json"},
        )
        logger.info(f"Initialized Ollama backend client for {base_url}")

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Run one blocking generation call.

        Raises:
            BackendInvocationError: If the backend is unreachable or fails
        """
        payload = build_payload(request, stream=False)
        logger.info(f"Backend request: model={request.model}, stream=False")

        try:
            response = await self._client.post(CHAT_COMPLETIONS_PATH, json=payload)
        except httpx.TransportError as e:
            logger.warning(f"Request failed to {self.base_url}: {e!r}")
            raise BackendInvocationError(
                f"Backend unreachable at {self.base_url}: {e}", status_code=503
            ) from e

        if response.is_error:
            logger.warning(f"HTTP error from {self.base_url}: {response.status_code}")
            raise BackendInvocationError(_describe_status_error(response))

        try:
            data = response.json()
        except ValueError as e:
            raise BackendInvocationError(f"Backend returned invalid JSON: {e}") from e

        return parse_completion(data)

    async def stream(self, request: GenerationRequest) -> AsyncGenerator[StreamEvent, None]:
        """Open an event stream for ``request``.

        Yields text deltas in arrival order, one event per completed tool
        call, and exactly one :class:`Finish` as the last event. A finish is
        synthesized when the backend stream ends without one.

        Closing the generator early closes the backend response, which
        stops generation on the backend.

        Raises:
            BackendInvocationError: If the backend is unreachable, fails or
                sends malformed data
        """
        payload = build_payload(request, stream=True)
        logger.info(f"Backend request: model={request.model}, stream=True")

        tool_calls = _ToolCallAccumulator()
        finish_reason: str | None = None

        try:
            async with self._client.stream("POST", CHAT_COMPLETIONS_PATH, json=payload) as response:
                if response.is_error:
                    await response.aread()
                    logger.warning(f"HTTP error from {self.base_url}: {response.status_code}")
                    raise BackendInvocationError(_describe_status_error(response))

                async for line in response.aiter_lines():
                    data = _sse_data(line)
                    if not data:
                        continue
                    if data == "[DONE]":
                        break

                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError as e:
                        raise BackendInvocationError(
                            f"Backend sent malformed stream data: {data[:200]}"
                        ) from e
                    if "error" in chunk:
                        raise BackendInvocationError(
                            f"Backend reported an error: {_error_message(chunk)}"
                        )

                    for choice in chunk.get("choices") or []:
                        delta = choice.get("delta") or {}
                        content = delta.get("content")
                        if content:
                            yield TextDelta(text=content)
                        for fragment in delta.get("tool_calls") or []:
                            for invocation in tool_calls.add(fragment):
                                yield ToolCallEvent(invocation=invocation)
                        if choice.get("finish_reason"):
                            finish_reason = choice["finish_reason"]

        except httpx.TransportError as e:
            logger.warning(f"Stream failed to {self.base_url}: {e!r}")
            raise BackendInvocationError(
                f"Backend unreachable at {self.base_url}: {e}", status_code=503
            ) from e

        for invocation in tool_calls.flush():
            yield ToolCallEvent(invocation=invocation)

        if finish_reason is None:
            logger.debug("Backend stream ended without a finish reason, assuming stop")
        yield Finish(reason=finish_reason or "stop")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
