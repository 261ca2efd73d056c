"""LLM access for semantic judgements and extraction."""

from .provider import (
    LLMProvider,
    OpenAIProvider,
    build_provider,
    is_rate_limit_error,
    parse_json_reply,
)

__all__ = [
    "LLMProvider",
    "OpenAIProvider",
    "build_provider",
    "is_rate_limit_error",
    "parse_json_reply",
]
