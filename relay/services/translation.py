"""Translate OpenAI chat requests into backend generation calls.

Covers message normalization (wire messages -> backend turns) and tool
translation (wire tool definitions and tool_choice -> ToolConfig).
Tool-call arguments arrive as JSON-encoded strings and are parsed here;
the backend client re-encodes them on the way out.
"""

import json
from collections.abc import Sequence
from typing import Any

from loguru import logger

from relay.errors import TranslationError
from relay.models.ir import (
    BackendMessage,
    GenerationRequest,
    NamedToolChoice,
    TextTurn,
    ToolCallTurn,
    ToolChoice,
    ToolConfig,
    ToolInvocation,
    ToolResultTurn,
    ToolSpec,
)
from relay.schemas.openai import (
    AssistantMessage,
    ChatCompletionRequest,
    ChatMessage,
    NamedToolChoiceOption,
    SystemMessage,
    Tool,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from relay.services.arguments import decode_arguments
from relay.services.resolver import ModelResolver

EMPTY_PARAMETERS_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}

_PLAIN_TOOL_CHOICES = ("auto", "none", "required")


def parse_arguments(raw: str, *, tool_name: str, call_id: str) -> Any:
    """Parse the JSON-encoded arguments of a tool call.

    An empty string is treated as an empty argument object.

    Raises:
        TranslationError: If ``raw`` is not valid JSON
    """
    try:
        return decode_arguments(raw)
    except ValueError as e:
        reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
        raise TranslationError(
            f"Invalid JSON in arguments of tool call '{call_id}' ({tool_name}): {reason}"
        ) from e


def _normalize_tool_call(tool_call: ToolCall) -> ToolInvocation:
    return ToolInvocation(
        id=tool_call.id,
        name=tool_call.function.name,
        arguments=parse_arguments(
            tool_call.function.arguments,
            tool_name=tool_call.function.name,
            call_id=tool_call.id,
        ),
    )


def normalize_message(message: ChatMessage) -> BackendMessage:
    """Convert a single wire message into its backend representation.

    Raises:
        TranslationError: For unsupported roles or unparsable tool arguments
    """
    if isinstance(message, SystemMessage):
        return TextTurn(role="system", content=message.content)
    if isinstance(message, UserMessage):
        return TextTurn(role="user", content=message.content)
    if isinstance(message, AssistantMessage):
        if message.tool_calls:
            return ToolCallTurn(
                tool_calls=tuple(_normalize_tool_call(tc) for tc in message.tool_calls)
            )
        return TextTurn(role="assistant", content=message.content or "")
    if isinstance(message, ToolMessage):
        return ToolResultTurn(tool_call_id=message.tool_call_id, content=message.content)

    role = getattr(message, "role", None)
    raise TranslationError(f"Unsupported message role: {role!r}")


def normalize_messages(messages: Sequence[ChatMessage]) -> list[BackendMessage]:
    """Convert the wire message list into backend turns, preserving order."""
    return [normalize_message(m) for m in messages]


def translate_tool_choice(tool_choice: Any) -> ToolChoice:
    """Translate a wire tool_choice directive.

    ``"auto"``, ``"none"`` and ``"required"`` pass through; a named function
    choice becomes :class:`NamedToolChoice`.

    Raises:
        TranslationError: If the directive is not recognised
    """
    if tool_choice in _PLAIN_TOOL_CHOICES:
        return tool_choice
    if isinstance(tool_choice, NamedToolChoiceOption):
        return NamedToolChoice(name=tool_choice.function.name)
    if isinstance(tool_choice, dict):
        function = tool_choice.get("function")
        name = function.get("name") if isinstance(function, dict) else None
        if tool_choice.get("type", "function") == "function" and isinstance(name, str) and name:
            return NamedToolChoice(name=name)
    raise TranslationError(f"Unsupported tool_choice: {tool_choice!r}")


def translate_tools(
    tools: Sequence[Tool] | None,
    tool_choice: Any = None,
) -> ToolConfig | None:
    """Build the backend tool configuration.

    Returns ``None`` when no tools are supplied, in which case the tool
    choice is ignored and no tool configuration reaches the backend.
    """
    if not tools:
        if tool_choice is not None:
            logger.debug("tool_choice given without tools, ignoring")
        return None

    specs: dict[str, ToolSpec] = {}
    for tool in tools:
        fn = tool.function
        parameters = fn.parameters if fn.parameters is not None else EMPTY_PARAMETERS_SCHEMA
        specs[fn.name] = ToolSpec(
            name=fn.name,
            description=fn.description,
            parameters=dict(parameters),
        )

    return ToolConfig(
        tools=specs,
        tool_choice=translate_tool_choice(tool_choice) if tool_choice is not None else None,
    )


def build_generation_request(
    request: ChatCompletionRequest,
    resolver: ModelResolver,
) -> GenerationRequest:
    """Assemble the backend generation call for an inbound chat request."""
    model_id = resolver.resolve(request.model)
    if model_id != request.model:
        logger.debug(f"Resolved tier '{request.model}' to model '{model_id}'")

    return GenerationRequest(
        model=model_id,
        messages=normalize_messages(request.messages),
        temperature=request.temperature,
        max_tokens=request.max_tokens,
        tools=translate_tools(request.tools, request.tool_choice),
    )
