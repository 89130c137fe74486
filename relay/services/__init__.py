"""Chat-completion translation engine services."""

from relay.services.backend import OllamaBackend, map_finish_reason
from relay.services.formatter import OpenAIFormatter
from relay.services.resolver import ModelResolver, TierTable
from relay.services.streaming import ChunkEmitter
from relay.services.translation import build_generation_request

__all__ = [
    "ChunkEmitter",
    "ModelResolver",
    "OllamaBackend",
    "OpenAIFormatter",
    "TierTable",
    "build_generation_request",
    "map_finish_reason",
]
