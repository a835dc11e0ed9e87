"""Abstract base class for extraction strategies."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod

from enhancer.config import ScrapingSettings
from enhancer.models import ExtractedContent
from enhancer.scrape.parse import build_content

ACCEPT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


class ExtractionStrategy(ABC):
    """Fetches an HTML snapshot for a URL; parsing is shared by all strategies."""

    def __init__(self, settings: ScrapingSettings):
        self.settings = settings

    @property
    @abstractmethod
    def method(self) -> str:
        """Tag recorded on ExtractedContent.method."""
        ...

    @abstractmethod
    async def fetch_html(self, url: str) -> str:
        """Return the page HTML or raise ScrapingError / NetworkError."""
        ...

    async def extract(self, url: str) -> ExtractedContent:
        html = await self.fetch_html(url)
        return build_content(url, html, self.settings, self.method)

    def user_agent(self) -> str:
        return random.choice(self.settings.user_agents)

    async def close(self) -> None:
        """Release any resources held by the strategy."""
