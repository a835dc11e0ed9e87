"""LLM provider registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from enhancer.config import LLMSettings
    from enhancer.llm.base import BaseLLMProvider
    from enhancer.retry import RetryPolicy

PROVIDERS: dict[str, type[BaseLLMProvider]] = {}


def register_provider(name: str):
    """Decorator to register an LLM provider."""

    def decorator(cls):
        PROVIDERS[name] = cls
        return cls

    return decorator


def get_provider(settings: LLMSettings, policy: RetryPolicy | None = None) -> BaseLLMProvider:
    """Instantiate the configured provider."""
    if settings.provider not in PROVIDERS:
        raise ValueError(f"Unknown LLM provider type: {settings.provider}")
    cls = PROVIDERS[settings.provider]
    return cls(
        api_key=settings.api_key,
        base_url=settings.base_url,
        default_model=settings.model,
        timeout=settings.timeout,
        policy=policy,
    )


# Import implementations to trigger registration
from enhancer.llm.anthropic_provider import AnthropicProvider  # noqa: E402, F401
from enhancer.llm.openai_compat import OpenAICompatibleProvider  # noqa: E402, F401
