"""OpenAPI document generation for SDK generators.

FastAPI's generated document cannot express that the chat endpoint switches
to an event stream when ``stream`` is true, so the ``x-fern-streaming``
extension and the ``ChatCompletionChunk`` schema are added here.
"""

import json
from pathlib import Path
from typing import Any

from fastapi import FastAPI

from relay.schemas.openai import ChatCompletionChunk

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"
CHUNK_SCHEMA_REF = "#/components/schemas/ChatCompletionChunk"


def build_openapi_spec(app: FastAPI) -> dict[str, Any]:
    """Return the app's OpenAPI document with streaming metadata added."""
    spec = json.loads(json.dumps(app.openapi()))
    schemas = spec.setdefault("components", {}).setdefault("schemas", {})

    chunk_schema = ChatCompletionChunk.model_json_schema(
        ref_template="#/components/schemas/{model}"
    )
    for name, definition in chunk_schema.pop("$defs", {}).items():
        schemas.setdefault(name, definition)
    schemas["ChatCompletionChunk"] = chunk_schema

    operation = spec.get("paths", {}).get(CHAT_COMPLETIONS_PATH, {}).get("post")
    if operation is not None:
        operation["x-fern-streaming"] = {
            "stream-condition": "stream",
            "response": {"$ref": CHUNK_SCHEMA_REF},
            "response-stream": {"$ref": CHUNK_SCHEMA_REF},
        }

    return spec


def write_openapi_spec(app: FastAPI, output: Path) -> Path:
    """Write the OpenAPI document to ``output`` as indented JSON."""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(build_openapi_spec(app), indent=2) + "\n")
    return output
