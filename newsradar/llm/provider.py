"""LLM provider interface and implementations."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from ..exceptions import LLMResponseError

logger = logging.getLogger(__name__)

CODE_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Parse a JSON object out of a model reply.

    Markdown code fences are removed and the outermost ``{...}`` block is
    decoded.
    """
    cleaned = CODE_FENCE_RE.sub("", text or "").strip()
    match = JSON_OBJECT_RE.search(cleaned)
    if not match:
        raise LLMResponseError(f"No JSON object in reply: {cleaned[:100]!r}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Malformed JSON in reply: {e}") from e
    if not isinstance(data, dict):
        raise LLMResponseError("Reply JSON is not an object")
    return data


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for provider rate-limit or quota errors."""
    if isinstance(exc, openai.RateLimitError):
        return True
    if getattr(exc, "status_code", None) == 429 or getattr(exc, "status", None) == 429:
        return True
    message = str(exc).lower()
    return "rate_limit" in message or "rate limit" in message or "quota" in message


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 200,
        temperature: float = 0.1,
    ) -> Dict[str, Any]:
        """
        Send a prompt and decode the JSON object in the reply.

        Args:
            prompt: User prompt
            system: Optional system prompt
            max_tokens: Completion token limit
            temperature: Sampling temperature

        Returns:
            Decoded JSON object

        Raises:
            LLMResponseError: Reply does not contain a JSON object
        """
        pass

    @abstractmethod
    def get_usage_stats(self) -> Dict:
        """Get usage statistics."""
        pass


class OpenAIProvider(LLMProvider):
    """Provider for any OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.3-70b",
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize OpenAI-compatible provider.

        Args:
            api_key: API key
            model: Model name to use
            base_url: Endpoint base URL (e.g. Cerebras)
            timeout: Request timeout in seconds
        """
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self.model = model
        self.total_tokens = 0
        self.api_calls = 0

    async def complete_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 200,
        temperature: float = 0.1,
    ) -> Dict[str, Any]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        self.api_calls += 1
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        if response.usage:
            self.total_tokens += response.usage.total_tokens

        return parse_json_reply(response.choices[0].message.content or "")

    async def close(self) -> None:
        await self.client.close()

    def get_usage_stats(self) -> Dict:
        """Get usage statistics."""
        return {
            "total_tokens": self.total_tokens,
            "api_calls": self.api_calls,
            "model": self.model,
        }


def build_provider(llm_config: Dict[str, Any]) -> Optional[LLMProvider]:
    """Create the configured provider, or None when no API key is set."""
    if llm_config.get("provider", "openai") != "openai":
        raise ValueError(f"Unsupported LLM provider: {llm_config.get('provider')}")

    api_key = llm_config.get("api_key")
    if not api_key:
        logger.warning("No LLM API key configured; semantic checks are disabled")
        return None

    return OpenAIProvider(
        api_key=api_key,
        model=llm_config.get("model", "llama-3.3-70b"),
        base_url=llm_config.get("base_url"),
        timeout=llm_config.get("timeout", 30.0),
    )
