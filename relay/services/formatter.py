"""OpenAI protocol formatter.

Converts IR types (GenerationResult, stream events) into OpenAI Chat
Completion format dicts, ready for a JSON response (non-streaming) or for
SSE ``data:`` events (streaming).

Each formatter instance is scoped to a single request and fixes the
completion id and creation timestamp shared by everything it produces.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from relay.models.ir import GenerationResult, ToolInvocation
from relay.services.arguments import encode_arguments
from relay.services.backend import map_finish_reason

COMPLETION_ID_PREFIX = "chatcmpl-"


def generate_completion_id() -> str:
    """Generate a completion id: ``chatcmpl-`` followed by 24 alphanumerics."""
    return f"{COMPLETION_ID_PREFIX}{uuid.uuid4().hex[:24]}"


def tool_call_to_wire(invocation: ToolInvocation) -> dict[str, Any]:
    return {
        "id": invocation.id,
        "type": "function",
        "function": {
            "name": invocation.name,
            "arguments": encode_arguments(invocation.arguments),
        },
    }


class OpenAIFormatter:
    """Formats IR types into the OpenAI Chat Completion protocol.

    Streaming produces chat.completion.chunk objects.
    Non-streaming produces a chat.completion response dict.

    ``model_id`` is the model string the client asked for (a tier alias is
    echoed back as-is, not the resolved backend model).
    """

    def __init__(self, model_id: str, request_id: str | None = None) -> None:
        self.model_id = model_id
        self.request_id = request_id or generate_completion_id()
        self.created = int(time.time())

    # ── streaming ────────────────────────────────────────────────────

    def content_chunk(self, text: str) -> dict[str, Any]:
        return self._chunk(delta={"content": text})

    def tool_call_chunk(self, index: int, invocation: ToolInvocation) -> dict[str, Any]:
        entry = {"index": index, **tool_call_to_wire(invocation)}
        return self._chunk(delta={"tool_calls": [entry]})

    def finish_chunk(self, finish_reason: str) -> dict[str, Any]:
        return self._chunk(delta={}, finish_reason=finish_reason)

    # ── non-streaming ────────────────────────────────────────────────

    def format_complete(self, result: GenerationResult) -> dict[str, Any]:
        """Build the chat.completion response for a finished generation.

        Content is ``None`` when the model produced only tool calls. The
        ``tool_calls`` key is present only when there is at least one call.
        Missing token counts are reported as 0 and the total is always
        computed here.
        """
        has_tool_calls = bool(result.tool_calls)
        message: dict[str, Any] = {
            "role": "assistant",
            "content": None if has_tool_calls and not result.text else result.text,
        }
        if has_tool_calls:
            message["tool_calls"] = [tool_call_to_wire(tc) for tc in result.tool_calls]

        prompt_tokens = result.prompt_tokens or 0
        completion_tokens = result.completion_tokens or 0

        return {
            "id": self.request_id,
            "object": "chat.completion",
            "created": self.created,
            "model": self.model_id,
            "choices": [
                {
                    "index": 0,
                    "message": message,
                    "finish_reason": map_finish_reason(
                        result.finish_reason, has_tool_calls=has_tool_calls
                    ),
                }
            ],
            "usage": {
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
        }

    # ── helpers ───────────────────────────────────────────────────────

    def _chunk(
        self,
        delta: dict[str, Any],
        finish_reason: str | None = None,
    ) -> dict[str, Any]:
        return {
            "id": self.request_id,
            "object": "chat.completion.chunk",
            "created": self.created,
            "model": self.model_id,
            "choices": [
                {
                    "index": 0,
                    "delta": delta,
                    "finish_reason": finish_reason,
                }
            ],
        }
