"""Stream chunk emitter.

Drives an OpenAI chat.completion.chunk stream from backend stream events:

    IDLE -> STREAMING -> FINISHING -> CLOSED

The emitter is an async generator of SSE-ready dicts for
``EventSourceResponse``. Whatever happens upstream, the last item it yields
is the ``[DONE]`` marker, so client stream parsers always terminate.
"""

import json
from collections.abc import AsyncGenerator
from enum import Enum
from typing import Any

from loguru import logger

from relay.models.ir import Finish, StreamEvent, TextDelta, ToolCallEvent
from relay.services.backend import map_finish_reason
from relay.services.formatter import OpenAIFormatter

DONE_MARKER = "[DONE]"


class EmitterState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FINISHING = "finishing"
    CLOSED = "closed"


class ChunkEmitter:
    """Turns one request's stream events into SSE chunk events.

    Tool calls get a local sequential index (0, 1, 2, ...) in emission order,
    independent of any id the backend assigns. The finish reason resolves to
    ``tool_calls`` whenever at least one tool call was emitted.
    """

    def __init__(self, formatter: OpenAIFormatter) -> None:
        self.formatter = formatter
        self.state = EmitterState.IDLE
        self.chunks_sent = 0
        self._tool_calls_sent = 0

    def _sse(self, chunk: dict[str, Any]) -> dict[str, str]:
        self.chunks_sent += 1
        return {"data": json.dumps(chunk)}

    def _finish(self, raw_reason: str | None) -> dict[str, str]:
        self.state = EmitterState.FINISHING
        reason = map_finish_reason(raw_reason, has_tool_calls=self._tool_calls_sent > 0)
        return self._sse(self.formatter.finish_chunk(reason))

    async def emit(
        self,
        events: AsyncGenerator[StreamEvent, None],
    ) -> AsyncGenerator[dict[str, str], None]:
        """Consume ``events`` and yield SSE events, ending with ``[DONE]``.

        An exception from ``events`` is logged and ends the stream early,
        without further content chunks but still with the ``[DONE]`` marker.
        The event source is always closed before the marker is sent.
        """
        if self.state is not EmitterState.IDLE:
            raise RuntimeError("ChunkEmitter can only be consumed once")
        self.state = EmitterState.STREAMING

        try:
            async for event in events:
                if isinstance(event, TextDelta):
                    if event.text:
                        yield self._sse(self.formatter.content_chunk(event.text))
                elif isinstance(event, ToolCallEvent):
                    chunk = self.formatter.tool_call_chunk(self._tool_calls_sent, event.invocation)
                    self._tool_calls_sent += 1
                    yield self._sse(chunk)
                elif isinstance(event, Finish):
                    yield self._finish(event.reason)
                    break
                else:
                    raise TypeError(f"Unknown stream event: {type(event).__name__}")
            else:
                logger.warning(
                    f"Event stream for {self.formatter.request_id} ended without finish"
                )
                yield self._finish(None)
        except Exception as e:
            logger.error(
                f"Stream {self.formatter.request_id} failed after "
                f"{self.chunks_sent} chunks: {type(e).__name__}: {e}"
            )
        finally:
            await events.aclose()

        self.state = EmitterState.CLOSED
        yield {"data": DONE_MARKER}
