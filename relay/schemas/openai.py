"""OpenAI-compatible request/response schemas.

Reference: https://platform.openai.com/docs/api-reference/chat
"""

import time
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

FinishReason = Literal["stop", "length", "tool_calls"]

# --- Tool Calling Schemas ---


class FunctionDefinition(BaseModel):
    """Function definition for tool calling."""

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None


class Tool(BaseModel):
    """Tool definition for tool calling."""

    type: Literal["function"] = "function"
    function: FunctionDefinition


class FunctionCall(BaseModel):
    """Function call details in assistant messages."""

    name: str
    arguments: str  # JSON string


class ToolCall(BaseModel):
    """Tool call in assistant messages."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class FunctionName(BaseModel):
    """Name of the function a named tool choice forces."""

    name: str


class NamedToolChoiceOption(BaseModel):
    """Tool choice that forces a specific function."""

    type: Literal["function"] = "function"
    function: FunctionName


# Tool choice can be:
# - "none": Don't call any tools
# - "auto": Model decides whether to call tools
# - "required": Model must call at least one tool
# - {"type": "function", "function": {"name": "..."}} for specific function
ToolChoiceOption = Literal["none", "auto", "required"] | NamedToolChoiceOption | None


# --- Request Messages ---


class SystemMessage(BaseModel):
    """System prompt."""

    role: Literal["system"]
    content: str


class UserMessage(BaseModel):
    """User turn."""

    role: Literal["user"]
    content: str


class AssistantMessage(BaseModel):
    """Previous assistant turn.

    Carries either text content or the tool calls the assistant made.
    """

    role: Literal["assistant"]
    content: str | None = None
    tool_calls: list[ToolCall] | None = None


class ToolMessage(BaseModel):
    """Result of a tool call, answering the call with ``tool_call_id``."""

    role: Literal["tool"]
    content: str
    tool_call_id: str


ChatMessage = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolMessage,
    Field(discriminator="role"),
]


class ChatCompletionRequest(BaseModel):
    """OpenAI Chat Completion request."""

    model: str = Field(description="Model name or tier alias (small/medium/large)")
    messages: list[ChatMessage] = Field(min_length=1)
    stream: bool = False
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)

    # Tool calling support
    tools: list[Tool] | None = None
    tool_choice: ToolChoiceOption = None


# --- Response Models ---


class ResponseMessage(BaseModel):
    """Assistant message in a chat completion response.

    ``content`` is null when the model answered only with tool calls.
    ``tool_calls`` is omitted entirely when there are none.
    """

    role: Literal["assistant"] = "assistant"
    content: str | None
    tool_calls: list[ToolCall] | None = None


class ChatCompletionChoice(BaseModel):
    """A single choice in chat completion response."""

    index: int
    message: ResponseMessage
    finish_reason: FinishReason


class Usage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionResponse(BaseModel):
    """OpenAI Chat Completion response."""

    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str
    choices: list[ChatCompletionChoice]
    usage: Usage


# --- Streaming Response Models ---


class ToolCallDelta(BaseModel):
    """Tool call carried by a streaming chunk."""

    index: int
    id: str | None = None
    type: Literal["function"] | None = None
    function: FunctionCall | None = None


class ChatCompletionChunkDelta(BaseModel):
    """Delta content in streaming response (``content`` or ``tool_calls``)."""

    content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None


class ChatCompletionChunkChoice(BaseModel):
    """A single choice in streaming chunk."""

    index: int
    delta: ChatCompletionChunkDelta
    finish_reason: FinishReason | None = None


class ChatCompletionChunk(BaseModel):
    """OpenAI Chat Completion streaming chunk."""

    id: str
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str
    choices: list[ChatCompletionChunkChoice]


# --- Models Endpoint ---


class ModelInfo(BaseModel):
    """Information about a single model."""

    id: str
    object: Literal["model"] = "model"
    created: int = 0
    owned_by: str = "ollama"


class ModelListResponse(BaseModel):
    """Response for /v1/models endpoint."""

    object: Literal["list"] = "list"
    data: list[ModelInfo]


class TierListResponse(BaseModel):
    """Response for /v1/models/tiers endpoint."""

    tiers: dict[str, str]


# --- Config Endpoint ---


class ProviderInfo(BaseModel):
    """Backend provider the gateway forwards to."""

    name: str = "ollama"
    base_url: str = Field(serialization_alias="baseUrl")


class AuthInfo(BaseModel):
    """Effective authentication policy."""

    local_bypass: bool = Field(serialization_alias="localBypass")
    key_required: bool = Field(serialization_alias="keyRequired")


class ConfigResponse(BaseModel):
    """Response for /v1/config endpoint."""

    provider: ProviderInfo
    tiers: dict[str, str]
    auth: AuthInfo


# --- Health ---


class HealthResponse(BaseModel):
    """Response for /health endpoint."""

    status: Literal["ok"] = "ok"
    version: str
    uptime: int = Field(description="Uptime in seconds")
    timestamp: str = Field(description="Current time (ISO 8601, UTC)")
