"""
LLM client abstraction for the interviewer's text generation.

Provides an async interface for chat completions with:
- Structured logging of requests/responses
- Timeout handling
- Usage tracking (tokens)

Calls are made exactly once. A completion is billed and not idempotent, so
timeouts and rate limits are reported to the caller instead of retried.

Supported providers:
- anthropic: Claude models via the Messages API
- openai: OpenAI chat completions
- deepseek: DeepSeek (OpenAI-compatible)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time

import httpx
import structlog

from src.core.config import settings
from src.core.exceptions import (
    LLMHTTPError,
    LLMInvalidResponseError,
    LLMRateLimitError,
    LLMTimeoutError,
)

log = structlog.get_logger(__name__)


Turn = Dict[str, str]  # {"role": "user" | "assistant", "content": str}


# =============================================================================
# Default configurations per provider
# =============================================================================

PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "anthropic": dict(
        model="claude-sonnet-4-5",
        temperature=0.7,  # Conversational, warm follow-up questions
        max_tokens=512,
        timeout=30.0,
    ),
    "openai": dict(
        model="gpt-4o-mini",
        temperature=0.7,
        max_tokens=512,
        timeout=30.0,
    ),
    "deepseek": dict(
        model="deepseek-chat",
        temperature=0.7,
        max_tokens=512,
        timeout=30.0,
    ),
}

DEFAULT_PROVIDER = "anthropic"


# =============================================================================
# Response and Base Classes
# =============================================================================


@dataclass
class LLMResponse:
    """Standardized LLM response."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0
    raw_response: Optional[Dict[str, Any]] = None


class LLMClient(ABC):
    """Abstract base for LLM providers."""

    provider_name: str = "unknown"

    @abstractmethod
    async def complete(
        self,
        messages: List[Turn],
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        """
        Generate the next assistant utterance.

        Args:
            messages: Ordered conversation turns, oldest first
            system: Optional system instruction
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            timeout: Optional timeout override in seconds

        Returns:
            LLMResponse with content and metadata

        Raises:
            LLMTimeoutError: Request exceeded the timeout
            LLMRateLimitError: Provider returned 429
            LLMHTTPError: Provider returned another non-success status
            LLMInvalidResponseError: Response carried no text
        """
        pass


async def _post_once(
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
    provider: str,
) -> Dict[str, Any]:
    """POST a completion request once and map transport failures to LLM errors."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
    except httpx.TimeoutException as e:
        log.warning("llm_timeout", provider=provider, timeout_seconds=timeout)
        raise LLMTimeoutError(f"LLM call timed out (timeout={timeout}s)") from e
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        if status_code == 429:
            log.warning("llm_rate_limit", provider=provider)
            raise LLMRateLimitError("LLM rate limit exceeded") from e
        log.error("llm_http_error", provider=provider, status_code=status_code)
        raise LLMHTTPError(
            f"LLM provider returned HTTP {status_code}", status_code=status_code
        ) from e
    except httpx.HTTPError as e:
        log.error("llm_transport_error", provider=provider, error=str(e))
        raise LLMHTTPError(f"LLM request failed: {e}", status_code=0) from e
    except ValueError as e:
        raise LLMInvalidResponseError(f"LLM response was not JSON: {e}") from e

    if not isinstance(data, dict):
        raise LLMInvalidResponseError(
            f"LLM response was {type(data).__name__}, expected a JSON object"
        )
    return data


# Raised while reading an unexpected payload shape
_MALFORMED = (AttributeError, KeyError, TypeError, IndexError)


def _usage(data: Dict[str, Any], input_key: str, output_key: str) -> Dict[str, int]:
    usage = data.get("usage") or {}
    return {
        "input_tokens": usage.get(input_key) or 0,
        "output_tokens": usage.get(output_key) or 0,
    }


# =============================================================================
# Anthropic Client
# =============================================================================


class AnthropicClient(LLMClient):
    """Anthropic Claude API client.

    Uses httpx for async HTTP calls to the Messages API.
    """

    provider_name = "anthropic"

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        api_key: Optional[str] = None,
    ):
        """
        Initialize Anthropic client.

        Raises:
            ValueError: If API key is not configured
        """
        self.api_key = api_key or settings.anthropic_api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = "https://api.anthropic.com/v1"

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not configured. Set it in .env.")

        log.info("anthropic_client_initialized", model=self.model, timeout=self.timeout)

    async def complete(
        self,
        messages: List[Turn],
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        temperature = self.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.max_tokens
        timeout = timeout or self.timeout

        headers = {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": "2023-06-01",
        }

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
            "temperature": temperature,
        }
        if system:
            payload["system"] = system

        log.debug(
            "llm_call_start",
            provider=self.provider_name,
            model=self.model,
            turn_count=len(messages),
            system_length=len(system) if system else 0,
        )

        start = time.perf_counter()
        data = await _post_once(
            f"{self.base_url}/messages", headers, payload, timeout, self.provider_name
        )
        latency_ms = (time.perf_counter() - start) * 1000

        try:
            content = ""
            for block in data.get("content") or []:
                if block.get("type", "text") == "text":
                    content += block.get("text") or ""
            content = content.strip()
            usage = _usage(data, "input_tokens", "output_tokens")
        except _MALFORMED as e:
            log.error("llm_malformed_response", provider=self.provider_name, error=str(e))
            raise LLMInvalidResponseError(f"Malformed Anthropic response: {e}") from e

        if not content:
            raise LLMInvalidResponseError("Anthropic response contained no text")

        log.info(
            "llm_call_complete",
            provider=self.provider_name,
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
        )

        return LLMResponse(
            content=content,
            model=data.get("model") or self.model,
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


# =============================================================================
# OpenAI-Compatible Clients
# =============================================================================


class OpenAICompatibleClient(LLMClient):
    """
    Base class for OpenAI-compatible chat completion APIs.

    - OpenAI: https://api.openai.com/v1
    - DeepSeek: https://api.deepseek.com
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        base_url: str,
        provider_name: str,
        api_key: str,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url
        self.provider_name = provider_name
        self.api_key = api_key

        log.info(
            "openai_compatible_client_initialized",
            provider=self.provider_name,
            model=self.model,
            timeout=self.timeout,
        )

    async def complete(
        self,
        messages: List[Turn],
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        temperature = self.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.max_tokens
        timeout = timeout or self.timeout

        chat: List[Turn] = []
        if system:
            chat.append({"role": "system", "content": system})
        chat.extend(messages)

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": chat,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        log.debug(
            "llm_call_start",
            provider=self.provider_name,
            model=self.model,
            turn_count=len(messages),
            system_length=len(system) if system else 0,
        )

        start = time.perf_counter()
        data = await _post_once(
            f"{self.base_url}/chat/completions",
            headers,
            payload,
            timeout,
            self.provider_name,
        )
        latency_ms = (time.perf_counter() - start) * 1000

        try:
            content = ""
            if data.get("choices"):
                message = data["choices"][0].get("message") or {}
                content = (message.get("content") or "").strip()
            usage = _usage(data, "prompt_tokens", "completion_tokens")
        except _MALFORMED as e:
            log.error("llm_malformed_response", provider=self.provider_name, error=str(e))
            raise LLMInvalidResponseError(
                f"Malformed {self.provider_name} response: {e}"
            ) from e

        if not content:
            raise LLMInvalidResponseError(
                f"{self.provider_name} response contained no text"
            )

        log.info(
            "llm_call_complete",
            provider=self.provider_name,
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
        )

        return LLMResponse(
            content=content,
            model=data.get("model") or self.model,
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


class OpenAIClient(OpenAICompatibleClient):
    """OpenAI chat completions client."""

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        api_key: Optional[str] = None,
    ):
        api_key = api_key or settings.openai_api_key
        if not api_key:
            raise ValueError("OPENAI_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            base_url="https://api.openai.com/v1",
            provider_name="openai",
            api_key=api_key,
        )


class DeepSeekClient(OpenAICompatibleClient):
    """
    DeepSeek API client.

    API Docs: https://platform.deepseek.com/api-docs/
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        api_key: Optional[str] = None,
    ):
        api_key = api_key or settings.deepseek_api_key
        if not api_key:
            raise ValueError("DEEPSEEK_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            base_url="https://api.deepseek.com",
            provider_name="deepseek",
            api_key=api_key,
        )


# =============================================================================
# Client Factory
# =============================================================================

PROVIDER_CLASSES = {
    "anthropic": AnthropicClient,
    "openai": OpenAIClient,
    "deepseek": DeepSeekClient,
}

PROVIDER_KEY_SETTINGS = {
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "deepseek": ("deepseek_api_key", "DEEPSEEK_API_KEY"),
}


def configured_provider() -> str:
    return settings.llm_provider or DEFAULT_PROVIDER


def get_llm_client(timeout: Optional[float] = None) -> LLMClient:
    """
    Factory for the generation client.

    Uses per-provider defaults, with LLM_PROVIDER / LLM_MODEL overrides.

    Args:
        timeout: Request timeout override (e.g. the progression config's
            generation_timeout)

    Raises:
        ValueError: If unknown provider configured or API key missing
    """
    provider = configured_provider()
    if provider not in PROVIDER_CLASSES:
        raise ValueError(
            f"Unknown LLM provider '{provider}'. "
            f"Supported providers: {', '.join(PROVIDER_CLASSES)}"
        )

    defaults = PROVIDER_DEFAULTS[provider]
    return PROVIDER_CLASSES[provider](
        model=settings.llm_model or defaults["model"],
        temperature=defaults["temperature"],
        max_tokens=defaults["max_tokens"],
        timeout=timeout or defaults["timeout"],
    )
