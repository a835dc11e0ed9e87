"""Anthropic Claude LLM provider."""

from __future__ import annotations

import logging

import anthropic

from enhancer.errors import (
    AIProcessingError,
    ApiError,
    AuthenticationError,
    NetworkError,
    OperationTimeoutError,
    RateLimitError,
)
from enhancer.llm import register_provider
from enhancer.llm.base import BaseLLMProvider, LLMResponse

logger = logging.getLogger(__name__)


def _map_sdk_error(exc: anthropic.APIError) -> Exception:
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return AuthenticationError(
            f"Anthropic authentication failed ({exc.status_code}) - check API key",
            service="Anthropic", status_code=exc.status_code,
        )
    if isinstance(exc, anthropic.RateLimitError):
        value = exc.response.headers.get("retry-after")
        try:
            retry_after = float(value) if value else None
        except ValueError:
            retry_after = None
        return RateLimitError(
            "Anthropic rate limit exceeded", service="Anthropic", retry_after=retry_after,
        )
    if isinstance(exc, anthropic.APITimeoutError):
        return OperationTimeoutError("Anthropic request timeout", operation="llm")
    if isinstance(exc, anthropic.APIConnectionError):
        return NetworkError(f"Cannot connect to Anthropic API: {exc}", network_code="network")
    if isinstance(exc, anthropic.APIStatusError):
        return ApiError(
            f"Anthropic error ({exc.status_code}): {exc.message}",
            service="Anthropic", status_code=exc.status_code,
        )
    return ApiError(f"Anthropic error: {exc}", service="Anthropic")


@register_provider("anthropic")
class AnthropicProvider(BaseLLMProvider):
    """Provider for Anthropic Claude models."""

    @property
    def provider_name(self) -> str:
        return "anthropic"

    async def _request(
        self,
        prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        # Retries are handled by retry_async, not the SDK
        client = anthropic.AsyncAnthropic(
            api_key=self.api_key, timeout=self.timeout, max_retries=0,
        )

        try:
            response = await client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise _map_sdk_error(e) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text.strip():
            raise AIProcessingError("Empty response from Anthropic API", model=model)

        return LLMResponse(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
        )
