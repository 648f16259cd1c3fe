"""
Language-model gateway for the decision-memory pipeline.

Puts Groq, OpenAI and Anthropic behind one completion call. Back ends are
tried in priority order (fastest/cheapest first); quota, auth and deadline
failures hand the request to the next back end, anything else surfaces
immediately.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from .config import LLMConfig
from .errors import LLMConfigurationError, LLMParseError, NoProviderAvailableError
from .llm_utils import parse_llm_json

logger = logging.getLogger("decision_memory.common.llm_gateway")

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

# 400 = credit error, 401 = bad/expired key, 429 = rate limit
RETRYABLE_STATUS_CODES = {400, 401, 429}
RETRYABLE_MESSAGE_PATTERN = re.compile(
    r"quota|rate.?limit|credit balance|insufficient|incorrect api key|invalid.*key|timed? ?out",
    re.IGNORECASE,
)

JSON_REMINDER = "\n\nREMINDER: Respond ONLY with valid JSON, no markdown, no explanation."


def is_retryable_error(err: BaseException) -> bool:
    """True if the error means "try the next back end"."""
    if isinstance(err, asyncio.TimeoutError):
        return True
    status = getattr(err, "status_code", None) or getattr(err, "status", None)
    if status in RETRYABLE_STATUS_CODES:
        return True
    return bool(RETRYABLE_MESSAGE_PATTERN.search(str(err) or ""))


class OpenAICompatibleBackend:
    """Chat-completions back end (OpenAI itself, or Groq's compatible endpoint)."""

    def __init__(self, name: str, model: str, api_key: str, base_url: Optional[str] = None) -> None:
        self.name = name
        self.model = model
        self._client = None

        try:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        except ImportError:
            logger.warning("openai package not installed, %s back end unavailable", name)
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", name, e)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def complete(self, system: str, user: str, *, max_tokens: int, temperature: float) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return (response.choices[0].message.content or "").strip()


class AnthropicBackend:
    """Anthropic Messages API back end."""

    def __init__(self, model: str, api_key: str) -> None:
        self.name = "Anthropic"
        self.model = model
        self._client = None

        try:
            import anthropic

            self._client = anthropic.AsyncAnthropic(api_key=api_key)
        except ImportError:
            logger.warning("anthropic package not installed, Anthropic back end unavailable")
        except Exception as e:
            logger.warning("Failed to initialize Anthropic client: %s", e)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def complete(self, system: str, user: str, *, max_tokens: int, temperature: float) -> str:
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return response.content[0].text.strip()


class LLMGateway:
    """
    Ordered failover across configured LLM back ends.

    The back-end list is fixed once the gateway is built. Each call gets its
    own deadline; an expired deadline counts as a retryable failure.
    """

    def __init__(
        self,
        backends: Sequence[Any],
        timeout: float = 30.0,
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ) -> None:
        self._backends: List[Any] = [b for b in backends if getattr(b, "is_available", True)]
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._temperature = temperature

    @classmethod
    def from_config(cls, config: LLMConfig) -> "LLMGateway":
        """Build the back-end chain from whichever API keys are configured.

        Priority: Groq > OpenAI > Anthropic.
        """
        backends: List[Any] = []
        if config.groq_api_key:
            backends.append(OpenAICompatibleBackend(
                "Groq", config.groq_model, config.groq_api_key, base_url=GROQ_BASE_URL,
            ))
        if config.openai_api_key:
            backends.append(OpenAICompatibleBackend(
                "OpenAI", config.openai_model, config.openai_api_key,
            ))
        if config.anthropic_api_key:
            backends.append(AnthropicBackend(config.anthropic_model, config.anthropic_api_key))

        gateway = cls(
            backends,
            timeout=config.timeout,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )

        if not gateway.is_available:
            logger.warning("No LLM API key found, falling back to rule-based extraction")
        else:
            primary = gateway.backends[0]
            fallbacks = " -> ".join(b.name for b in gateway.backends[1:])
            logger.info(
                "LLM: %s %s%s",
                primary.name,
                primary.model,
                f" (fallback: {fallbacks})" if fallbacks else "",
            )
        return gateway

    @property
    def is_available(self) -> bool:
        return len(self._backends) > 0

    @property
    def backends(self) -> tuple:
        return tuple(self._backends)

    @property
    def primary(self) -> Optional[str]:
        if not self._backends:
            return None
        first = self._backends[0]
        return f"{first.name}/{first.model}"

    def describe(self) -> Dict[str, Any]:
        """Summary of the back-end chain for logs and health checks"""
        return {
            "available": self.is_available,
            "providers": [{"name": b.name, "model": b.model} for b in self._backends],
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send a completion, walking the back ends until one succeeds.

        Raises:
            LLMConfigurationError: no back end configured
            NoProviderAvailableError: every back end failed with a retryable error
            Exception: the first non-retryable back-end error, unchanged
        """
        if not self.is_available:
            raise LLMConfigurationError("No LLM provider configured")

        max_tokens = max_tokens if max_tokens is not None else self._max_tokens
        temperature = temperature if temperature is not None else self._temperature

        last_error: Optional[BaseException] = None
        for index, backend in enumerate(self._backends):
            try:
                return await asyncio.wait_for(
                    backend.complete(
                        system_prompt,
                        user_prompt,
                        max_tokens=max_tokens,
                        temperature=temperature,
                    ),
                    timeout=self._timeout,
                )
            except Exception as e:
                if not is_retryable_error(e):
                    raise
                nxt = self._backends[index + 1] if index + 1 < len(self._backends) else None
                logger.warning(
                    "%s quota/limit hit (%s)%s",
                    backend.name,
                    str(e) or type(e).__name__,
                    f", retrying with {nxt.name}" if nxt else ", no more providers",
                )
                last_error = e

        raise NoProviderAvailableError(
            "No LLM provider could serve the request", last_error=last_error,
        ) from last_error

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> dict:
        """Complete and parse as a JSON object. Retries once on parse failure.

        Provider failover applies inside each of the two attempts.
        """
        raw = await self.complete(
            system_prompt, user_prompt, max_tokens=max_tokens, temperature=temperature,
        )
        try:
            return parse_llm_json(raw)
        except LLMParseError:
            logger.warning("LLM returned malformed JSON, retrying with a stricter prompt")

        raw_retry = await self.complete(
            system_prompt,
            user_prompt + JSON_REMINDER,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        try:
            return parse_llm_json(raw_retry)
        except LLMParseError as e:
            raise LLMParseError("LLM response is not valid JSON after retry", raw=raw_retry) from e
