"""Intermediate Representation types for the translation engine.

These protocol-neutral types sit between the OpenAI wire schemas and the
backend client:
  Normalizer/Translator -> GenerationRequest
  Backend (batch)       -> GenerationResult
  Backend (streaming)   -> StreamEvent sequence
  Formatter             -> OpenAI chat.completion / chat.completion.chunk dicts

Tool-call arguments are held as parsed JSON values here. They are encoded
as JSON strings only at the wire boundaries.

All types are simple dataclasses and live for a single request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

# -- Messages ------------------------------------------------------------------


@dataclass(frozen=True)
class ToolInvocation:
    """A tool call requested by the model (or echoed back by the caller)."""

    id: str
    name: str
    arguments: Any = field(default_factory=dict)


@dataclass(frozen=True)
class TextTurn:
    """Plain text message from the system, the user or the assistant."""

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class ToolCallTurn:
    """Assistant turn that invokes one or more tools instead of answering."""

    tool_calls: tuple[ToolInvocation, ...]


@dataclass(frozen=True)
class ToolResultTurn:
    """Result of a tool invocation, answering the call with ``tool_call_id``."""

    tool_call_id: str
    content: str


BackendMessage = TextTurn | ToolCallTurn | ToolResultTurn


# -- Tools ---------------------------------------------------------------------


@dataclass(frozen=True)
class ToolSpec:
    """A tool the backend may invoke."""

    name: str
    parameters: dict[str, Any]
    description: str | None = None


@dataclass(frozen=True)
class NamedToolChoice:
    """Force the backend to call the tool called ``name``."""

    name: str


ToolChoice = Literal["auto", "none", "required"] | NamedToolChoice


@dataclass
class ToolConfig:
    """Tool set and tool-choice directive for one generation call."""

    tools: dict[str, ToolSpec]
    tool_choice: ToolChoice | None = None


# -- Requests and results ------------------------------------------------------


@dataclass
class GenerationRequest:
    """Backend-shaped generation call."""

    model: str
    messages: list[BackendMessage]
    temperature: float | None = None
    max_tokens: int | None = None
    tools: ToolConfig | None = None

    def __post_init__(self) -> None:
        if not self.messages:
            raise ValueError("GenerationRequest requires at least one message")


@dataclass
class GenerationResult:
    """Complete (non-streaming) generation result.

    ``finish_reason`` is the raw backend value. Token counts are ``None`` when
    the backend did not report them.
    """

    text: str = ""
    tool_calls: list[ToolInvocation] = field(default_factory=list)
    finish_reason: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


# -- Stream events -------------------------------------------------------------


@dataclass(frozen=True)
class TextDelta:
    """Incremental piece of generated text."""

    text: str


@dataclass(frozen=True)
class ToolCallEvent:
    """A fully assembled tool call."""

    invocation: ToolInvocation


@dataclass(frozen=True)
class Finish:
    """Terminates a stream. ``reason`` is the raw backend finish condition."""

    reason: str | None = None


StreamEvent = TextDelta | ToolCallEvent | Finish
