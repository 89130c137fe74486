"""Relay - OpenAI-compatible gateway for locally hosted Ollama models."""

__version__ = "1.0.0"
