"""Search provider registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from enhancer.search.base import BaseSearchProvider

SEARCH_PROVIDERS: dict[str, type[BaseSearchProvider]] = {}


def register_search_provider(name: str):
    """Decorator to register a web search provider."""

    def decorator(cls):
        SEARCH_PROVIDERS[name] = cls
        return cls

    return decorator


# Import implementations to trigger registration
from enhancer.search.serper import SerperSearchProvider  # noqa: E402, F401
