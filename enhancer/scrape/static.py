"""Static strategy: plain HTTP GET, no JavaScript."""

from __future__ import annotations

import logging

import httpx

from enhancer.errors import ScrapingError, error_from_transport
from enhancer.scrape.base import ACCEPT_HEADERS, ExtractionStrategy

logger = logging.getLogger(__name__)

STATUS_REASONS = {
    403: "blocked",
    404: "not_found",
    410: "not_found",
    429: "rate_limited",
}


class StaticStrategy(ExtractionStrategy):
    """Fetch raw HTML with httpx and a rotated browser user agent."""

    @property
    def method(self) -> str:
        return "static"

    async def fetch_html(self, url: str) -> str:
        headers = {"User-Agent": self.user_agent(), **ACCEPT_HEADERS}
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout,
                follow_redirects=True,
                max_redirects=self.settings.max_redirects,
            ) as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise error_from_transport(e, url) from e

        if resp.status_code != 200:
            reason = STATUS_REASONS.get(resp.status_code, "http_error")
            raise ScrapingError(
                f"HTTP {resp.status_code} ({reason.replace('_', ' ')}) for {url}",
                url=url,
                reason=reason,
                status_code=resp.status_code,
            )

        logger.debug("Fetched %s (%d bytes)", url, len(resp.text))
        return resp.text
