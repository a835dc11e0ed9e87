"""Serper.dev web search provider."""

from __future__ import annotations

import logging

import httpx

from enhancer.errors import NetworkError, error_from_response, error_from_transport
from enhancer.search import register_search_provider
from enhancer.search.base import BaseSearchProvider

logger = logging.getLogger(__name__)

SERPER_API_URL = "https://google.serper.dev/search"


@register_search_provider("serper")
class SerperSearchProvider(BaseSearchProvider):
    """Google results through the Serper.dev JSON API."""

    @property
    def name(self) -> str:
        return "serper"

    async def search(self, query: str, num: int) -> list[dict]:
        headers = {
            "X-API-KEY": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {"q": query, "num": num}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(SERPER_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise error_from_transport(e, SERPER_API_URL) from e

        if resp.status_code == 403:
            # Serper answers 403 both for exhausted credits and for blocked callers
            raise NetworkError("Search blocked by Serper (403)", SERPER_API_URL, "blocked")
        if resp.status_code != 200:
            raise error_from_response(resp, service="Serper")

        try:
            data = resp.json()
        except ValueError as e:
            # HTML or captcha page served with a 200
            raise NetworkError(
                "Search returned a non-JSON response", SERPER_API_URL, "blocked",
            ) from e
        hits = (data.get("organic") if isinstance(data, dict) else None) or []
        logger.debug("Serper returned %d organic result(s) for '%s'", len(hits), query)
        return hits
