"""OpenAI-compatible LLM provider (Groq, OpenAI, Ollama, vLLM, etc.)."""

from __future__ import annotations

import logging

import httpx

from enhancer.errors import AIProcessingError, error_from_response, error_from_transport
from enhancer.llm import register_provider
from enhancer.llm.base import BaseLLMProvider, LLMResponse

logger = logging.getLogger(__name__)


@register_provider("openai_compatible")
class OpenAICompatibleProvider(BaseLLMProvider):
    """Provider for any OpenAI-compatible chat completions API."""

    @property
    def provider_name(self) -> str:
        return "openai_compatible"

    async def _request(
        self,
        prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        url = f"{self.base_url.rstrip('/')}/chat/completions"

        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise error_from_transport(e, url) from e

        if resp.status_code != 200:
            raise error_from_response(resp, service="LLM")

        try:
            data = resp.json()
            choice = data["choices"][0]
            text = choice["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIProcessingError(f"Invalid response from LLM API: {e}", model=model) from e
        if not text or not text.strip():
            raise AIProcessingError("Empty response from LLM API", model=model)

        usage = data.get("usage") or {}
        logger.debug("LLM response received (%d chars)", len(text))
        return LLMResponse(
            text=text,
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            model=data.get("model") or model,
        )
