"""Abstract base class for web search providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseSearchProvider(ABC):
    """Returns raw hits shaped like ``{"link" | "url", "title", "snippet"}``."""

    def __init__(self, api_key: str, timeout: float = 30.0):
        self.api_key = api_key
        self.timeout = timeout

    @abstractmethod
    async def search(self, query: str, num: int) -> list[dict]:
        """Run one search request. Raises taxonomy errors on failure."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name."""
        ...
