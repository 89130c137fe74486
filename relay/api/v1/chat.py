"""Chat completions endpoint."""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger
from sse_starlette.sse import EventSourceResponse

from relay.config import RelaySettings
from relay.dependencies import get_app_settings, get_backend, get_resolver
from relay.errors import TimeoutHTTPException
from relay.models.ir import GenerationRequest
from relay.schemas.openai import ChatCompletionRequest, ChatCompletionResponse
from relay.services.backend import OllamaBackend
from relay.services.formatter import OpenAIFormatter
from relay.services.resolver import ModelResolver
from relay.services.streaming import ChunkEmitter
from relay.services.translation import build_generation_request

router = APIRouter(tags=["chat"])

STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


@router.post(
    "/chat/completions",
    response_model=ChatCompletionResponse,
    operation_id="createChatCompletion",
    summary="Create a chat completion (streaming or non-streaming)",
    responses={
        200: {
            "description": "A chat.completion object, or with stream=true a series of "
            "chat.completion.chunk events terminated by data: [DONE]",
            "content": {"text/event-stream": {"schema": {"type": "string"}}},
        }
    },
)
async def create_chat_completion(
    request: ChatCompletionRequest,
    backend: Annotated[OllamaBackend, Depends(get_backend)],
    resolver: Annotated[ModelResolver, Depends(get_resolver)],
    settings: Annotated[RelaySettings, Depends(get_app_settings)],
) -> JSONResponse | EventSourceResponse:
    """Create a chat completion.

    Accepts a tier alias (small/medium/large) or an explicit backend model
    name. Supports tool calling and both streaming and non-streaming
    responses. Compatible with the OpenAI Chat Completions API.
    """
    logger.info(
        f"Chat completion request: model={request.model}, stream={request.stream}, "
        f"messages={len(request.messages)}, tools={len(request.tools or [])}"
    )

    # Translation errors surface here, before any backend call
    generation = build_generation_request(request, resolver)
    formatter = OpenAIFormatter(model_id=request.model)

    if request.stream:
        return _handle_streaming(generation, backend, formatter)
    return await _handle_non_streaming(generation, backend, formatter, settings)


def _handle_streaming(
    generation: GenerationRequest,
    backend: OllamaBackend,
    formatter: OpenAIFormatter,
) -> EventSourceResponse:
    """Stream chunks as the backend produces them.

    When the client disconnects, the transport cancels the emitter, which
    closes the backend stream instead of letting generation run unconsumed.
    """
    emitter = ChunkEmitter(formatter)
    return EventSourceResponse(
        emitter.emit(backend.stream(generation)),
        headers=STREAM_HEADERS,
    )


async def _handle_non_streaming(
    generation: GenerationRequest,
    backend: OllamaBackend,
    formatter: OpenAIFormatter,
    settings: RelaySettings,
) -> JSONResponse:
    """Block for the full generation and return a chat.completion object."""
    timeout = settings.timeout_chat_seconds

    try:
        result = await asyncio.wait_for(backend.generate(generation), timeout=timeout)
    except TimeoutError:
        logger.warning(f"Chat completion timed out after {timeout}s")
        raise TimeoutHTTPException(
            timeout_seconds=timeout,
            detail=f"Chat completion timed out after {int(timeout)} seconds. "
            f"Consider using a smaller model or reducing max_tokens.",
        )

    response = formatter.format_complete(result)
    logger.debug(
        f"Chat completion {response['id']} finished: "
        f"reason={response['choices'][0]['finish_reason']}, usage={response['usage']}"
    )
    return JSONResponse(content=response)
