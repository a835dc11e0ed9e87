"""Provider interface for the article rewrite completions."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from enhancer.retry import DEFAULT_POLICY, RetryPolicy, retry_async

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class BaseLLMProvider(ABC):
    """One completion endpoint. Subclasses implement a single ``_request``;
    retries and usage logging happen here.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        default_model: str,
        timeout: float = 30.0,
        policy: RetryPolicy | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model
        self.timeout = timeout
        self.policy = policy or DEFAULT_POLICY

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @abstractmethod
    async def _request(
        self,
        prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        """One attempt. Failures must already be mapped onto the error taxonomy."""

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> LLMResponse:
        """Send ``prompt`` as a single user message, retrying transient failures."""
        model = model or self.default_model
        response = await retry_async(
            self._request, prompt, model, temperature, max_tokens,
            policy=self.policy,
            operation=f"LLM completion ({self.provider_name}/{model})",
        )
        logger.info(
            "%s completion: %d in / %d out tokens (%s)",
            self.provider_name, response.input_tokens, response.output_tokens,
            response.model or model,
        )
        return response
