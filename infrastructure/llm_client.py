"""
LLM Client: Text-Completion Collaborator with Fault Tolerance

Abstraction over the OpenAI and Anthropic chat APIs implementing:
- Circuit breaker pattern for fault isolation
- Retry with exponential backoff for rate limits and timeouts
- Provider errors mapped onto the engine's exception hierarchy
- Cumulative token usage tracking
- JSON extraction from fenced model output

Every engine prompt asks for a JSON document; parse_json_response is the
single place where model text becomes data.
"""

import asyncio
import json
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

import httpx
import anthropic
import openai
from anthropic import AsyncAnthropic
from loguru import logger
from openai import AsyncOpenAI
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import LLMSettings
from core.enums import LLMProvider
from core.exceptions import (
    KeywordIntelligenceException,
    LLMInvalidResponseError,
    LLMProviderError,
    LLMRateLimitError,
    LLMTimeoutError,
    MissingConfigurationError,
    is_retryable,
)
from core.models import TokenUsage, utc_now

# ============================================================================
# RESPONSE TYPES
# ============================================================================


@dataclass(frozen=True)
class LLMResponse:
    """Immutable completion with metadata."""

    content: str
    model: str
    usage: TokenUsage
    latency_ms: float
    provider: LLMProvider
    finish_reason: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)


# ============================================================================
# CIRCUIT BREAKER: Fault Isolation Pattern
# ============================================================================


class CircuitState(str, Enum):
    """Circuit breaker states implementing finite state machine."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failure threshold exceeded
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreaker:
    """
    In-process circuit breaker for one provider.

    State Transitions:
    CLOSED → OPEN: After failure_threshold consecutive failures
    OPEN → HALF_OPEN: After recovery_timeout duration
    HALF_OPEN → CLOSED: After success_threshold consecutive successes
    HALF_OPEN → OPEN: On any failure
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None

    async def call(self, func: Callable, *args, **kwargs):
        """
        Execute an async callable through the breaker.

        Raises:
            LLMProviderError: If circuit is open and recovery timeout not elapsed
        """
        if self.state == CircuitState.OPEN:
            elapsed = self._clock() - (self.last_failure_time or 0.0)
            if elapsed > self.recovery_timeout:
                logger.info(f"Circuit breaker '{self.name}' transitioning to HALF_OPEN")
                self.state = CircuitState.HALF_OPEN
                self.success_count = 0
            else:
                raise LLMProviderError(
                    f"Circuit breaker '{self.name}' is OPEN - service unavailable",
                    provider=self.name,
                )

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise

        self._record_success()
        return result

    def _record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                logger.info(f"Circuit breaker '{self.name}' transitioning to CLOSED")
                self.state = CircuitState.CLOSED
                self.failure_count = 0
        else:
            self.failure_count = 0

    def _record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"Circuit breaker '{self.name}' transitioning to OPEN (failure in HALF_OPEN)")
            self.state = CircuitState.OPEN
            self.success_count = 0
        elif self.failure_count >= self.failure_threshold:
            logger.error(
                f"Circuit breaker '{self.name}' transitioning to OPEN (failures: {self.failure_count})"
            )
            self.state = CircuitState.OPEN


# ============================================================================
# CLIENTS
# ============================================================================


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    error = exc.to_dict() if isinstance(exc, KeywordIntelligenceException) else {"message": str(exc)}
    logger.bind(error=error).warning(
        f"LLM call failed (attempt {retry_state.attempt_number}), retrying: {exc}"
    )


class AbstractLLMClient(ABC):
    """
    Provider-agnostic text-completion client.

    Subclasses implement `_call` and translate provider exceptions into
    LLMRateLimitError / LLMTimeoutError (retried) or LLMProviderError (not).
    """

    provider: LLMProvider

    def __init__(
        self,
        model: str,
        *,
        max_retries: int = 3,
        retry_min_wait: float = 2.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.model = model
        self.max_retries = max_retries
        self.retry_min_wait = retry_min_wait
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name=self.provider.value)

        self._usage = TokenUsage()
        self._usage_lock = asyncio.Lock()

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        temperature: float = 0.5,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """
        Generate a completion with retry and fault isolation.

        Args:
            prompt: User prompt
            system_prompt: Optional system instruction
            temperature: Sampling temperature [0.0, 2.0]
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with content and usage

        Raises:
            LLMRateLimitError / LLMTimeoutError: After retries are exhausted
            LLMProviderError: On non-retryable provider errors or open circuit
            LLMInvalidResponseError: On empty content
        """
        response = await self.circuit_breaker.call(
            self._execute_with_retry, prompt, system_prompt, temperature, max_tokens
        )

        async with self._usage_lock:
            self._usage = self._usage + response.usage

        logger.debug(
            f"LLM completion | provider={self.provider.value} | model={self.model} | "
            f"tokens={response.usage.total_tokens} | latency={response.latency_ms:.0f}ms"
        )
        return response

    async def _execute_with_retry(
        self,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_min_wait, min=self.retry_min_wait, max=30),
            retry=retry_if_exception(is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )
        async def _execute() -> LLMResponse:
            start_time = time.perf_counter()
            content, usage, finish_reason = await self._call(
                prompt, system_prompt, temperature, max_tokens
            )
            latency_ms = (time.perf_counter() - start_time) * 1000

            if not content or not content.strip():
                raise LLMInvalidResponseError(
                    f"No content in {self.provider.value} response",
                    response_text=content,
                )

            return LLMResponse(
                content=content,
                model=self.model,
                usage=usage,
                latency_ms=latency_ms,
                provider=self.provider,
                finish_reason=finish_reason,
            )

        return await _execute()

    @abstractmethod
    async def _call(
        self,
        prompt: str,
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
    ) -> tuple[Optional[str], TokenUsage, Optional[str]]:
        """Single provider request returning (content, usage, finish_reason)."""

    def get_token_usage(self) -> TokenUsage:
        """Cumulative token usage of this client."""
        return self._usage

    async def close(self) -> None:
        """Release provider HTTP resources."""


class OpenAIClient(AbstractLLMClient):
    """OpenAI chat completions client."""

    provider = LLMProvider.OPENAI

    def __init__(self, api_key: str, model: str = "gpt-4o", *, timeout: float = 60.0, **kwargs):
        super().__init__(model, **kwargs)
        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=httpx.Timeout(timeout),
            max_retries=0,  # Retries are handled here
        )
        self.timeout = timeout

    async def _call(self, prompt, system_prompt, temperature, max_tokens):
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as e:
            raise LLMRateLimitError(f"Rate limit exceeded: {e}", cause=e) from e
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(f"Request timeout: {e}", timeout_seconds=self.timeout, cause=e) from e
        except openai.APIConnectionError as e:
            raise LLMTimeoutError(f"Connection failed: {e}", cause=e) from e
        except openai.OpenAIError as e:
            raise LLMProviderError(
                f"Provider error: {e}",
                provider=self.provider.value,
                status_code=getattr(e, "status_code", None),
                cause=e,
            ) from e

        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        if not response.choices:
            return None, usage, None
        choice = response.choices[0]
        return choice.message.content, usage, choice.finish_reason

    async def close(self) -> None:
        await self.client.close()


class AnthropicClient(AbstractLLMClient):
    """Anthropic messages API client."""

    provider = LLMProvider.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        model: str = "claude-haiku-4-5-20251001",
        *,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, **kwargs)
        self.client = AsyncAnthropic(
            api_key=api_key,
            timeout=httpx.Timeout(timeout),
            max_retries=0,
        )
        self.timeout = timeout

    async def _call(self, prompt, system_prompt, temperature, max_tokens):
        params: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": min(temperature, 1.0),  # Anthropic caps at 1.0
            "max_tokens": max_tokens,
        }
        if system_prompt:
            params["system"] = system_prompt

        try:
            response = await self.client.messages.create(**params)
        except anthropic.RateLimitError as e:
            raise LLMRateLimitError(f"Rate limit exceeded: {e}", cause=e) from e
        except anthropic.APITimeoutError as e:
            raise LLMTimeoutError(f"Request timeout: {e}", timeout_seconds=self.timeout, cause=e) from e
        except anthropic.APIConnectionError as e:
            raise LLMTimeoutError(f"Connection failed: {e}", cause=e) from e
        except anthropic.AnthropicError as e:
            raise LLMProviderError(
                f"Provider error: {e}",
                provider=self.provider.value,
                status_code=getattr(e, "status_code", None),
                cause=e,
            ) from e

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = TokenUsage(
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
        )
        return content, usage, response.stop_reason

    async def close(self) -> None:
        await self.client.close()


def get_llm_client(settings: LLMSettings) -> AbstractLLMClient:
    """
    Build the configured text-completion client.

    Raises:
        MissingConfigurationError: If the selected provider has no API key
    """
    api_key = settings.active_api_key
    if api_key is None:
        raise MissingConfigurationError(f"{settings.provider.value}_api_key")

    if settings.provider == LLMProvider.ANTHROPIC:
        return AnthropicClient(
            api_key.get_secret_value(),
            settings.anthropic_model,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )
    return OpenAIClient(
        api_key.get_secret_value(),
        settings.model,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
    )


# ============================================================================
# RESPONSE PARSING
# ============================================================================

_OPENING_FENCE = re.compile(r"^`{3,}\s*(?:json)?\s*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?`{3,}\s*$")
_FENCE_LINE = re.compile(r"^\s*`{3,}\s*$", re.MULTILINE)


def parse_json_response(text: str, expected_format: Optional[str] = None) -> Any:
    """
    Decode a JSON document from model output, tolerating Markdown fences.

    Raises:
        LLMInvalidResponseError: If the text is not valid JSON
    """
    cleaned = text.strip()
    cleaned = _OPENING_FENCE.sub("", cleaned)
    cleaned = _CLOSING_FENCE.sub("", cleaned)
    cleaned = _FENCE_LINE.sub("", cleaned).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMInvalidResponseError(
            f"Failed to parse JSON from LLM response: {e.msg}",
            response_text=text,
            expected_format=expected_format,
            cause=e,
        ) from e


async def request_json_list(
    client: AbstractLLMClient,
    prompt: str,
    field_name: str,
    *,
    system_prompt: Optional[str] = None,
    temperature: float = 0.5,
    max_tokens: int = 4096,
) -> list[Any]:
    """
    Complete a prompt that asks for {field_name: [...]} and return the list.

    Raises:
        LLMInvalidResponseError: If the reply is not JSON or lacks the list
        LLMException: Any error raised by the completion itself
    """
    response = await client.complete(
        prompt, system_prompt=system_prompt, temperature=temperature, max_tokens=max_tokens
    )
    expected_format = f'{{"{field_name}": [...]}}'
    payload = parse_json_response(response.content, expected_format)
    if not isinstance(payload, dict) or not isinstance(payload.get(field_name), list):
        raise LLMInvalidResponseError(
            f"LLM response has no '{field_name}' list",
            response_text=response.content,
            expected_format=expected_format,
        )
    return payload[field_name]


__all__ = [
    "LLMResponse",
    "CircuitState",
    "CircuitBreaker",
    "AbstractLLMClient",
    "OpenAIClient",
    "AnthropicClient",
    "get_llm_client",
    "parse_json_response",
    "request_json_list",
]
