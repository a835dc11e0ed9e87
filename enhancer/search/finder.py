"""Find related articles: search, filter to plausible article pages, pick diverse domains."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from enhancer.config import SEARCH_RESULT_HARD_CAP, SearchSettings
from enhancer.errors import NetworkError, RateLimitError, ValidationError
from enhancer.models import ReferenceCandidate, SearchResult, is_valid_url
from enhancer.retry import DEFAULT_POLICY, RetryPolicy, retry_async
from enhancer.search import SEARCH_PROVIDERS
from enhancer.search.base import BaseSearchProvider

logger = logging.getLogger(__name__)


def normalize_hits(hits: list[dict]) -> list[SearchResult]:
    """Trim fields and drop hits missing a URL or title."""
    results = []
    for hit in hits:
        if not isinstance(hit, dict):
            continue
        url = str(hit.get("link") or hit.get("url") or "").strip()
        title = str(hit.get("title") or "").strip()
        if not url or not title:
            continue
        results.append(SearchResult(url=url, title=title, snippet=str(hit.get("snippet") or "").strip()))
    return results


def select_diverse(candidates: list[ReferenceCandidate], target_count: int) -> list[ReferenceCandidate]:
    """Greedy unique-domain pass, then top up with repeated domains in original order."""
    selected: list[ReferenceCandidate] = []
    used_domains: set[str] = set()

    for candidate in candidates:
        if len(selected) >= target_count:
            break
        if candidate.domain not in used_domains:
            selected.append(candidate)
            used_domains.add(candidate.domain)

    if len(selected) < target_count:
        for candidate in candidates:
            if len(selected) >= target_count:
                break
            if not any(candidate is chosen for chosen in selected):
                selected.append(candidate)

    return selected


class ReferenceFinder:
    """Web search plus filtering and domain-diverse selection."""

    def __init__(
        self,
        settings: SearchSettings,
        provider: BaseSearchProvider | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.settings = settings
        if provider is None:
            provider = SEARCH_PROVIDERS[settings.provider](
                settings.api_key, timeout=settings.timeout,
            )
        self.provider = provider
        self.policy = (policy or DEFAULT_POLICY).with_attempts(settings.max_attempts)
        self.last_result_count = 0

    def is_excluded_domain(self, domain: str) -> bool:
        return any(
            excluded in domain or domain in excluded
            for excluded in self.settings.excluded_domains
        )

    def has_excluded_extension(self, url: str) -> bool:
        path = urlparse(url).path.lower()
        return any(path.endswith(ext) for ext in self.settings.excluded_extensions)

    def filter_results(self, results: list[SearchResult]) -> list[ReferenceCandidate]:
        candidates = []
        seen_urls: set[str] = set()
        for result in results:
            if not is_valid_url(result.url):
                logger.debug("Dropping invalid URL %s", result.url)
                continue
            candidate = ReferenceCandidate.from_result(result)
            if self.is_excluded_domain(candidate.domain):
                logger.debug("Dropping excluded domain %s", candidate.domain)
                continue
            if self.has_excluded_extension(candidate.url):
                logger.debug("Dropping non-article file %s", candidate.url)
                continue
            if len(candidate.title) < self.settings.min_title_length:
                logger.debug("Dropping short title '%s'", candidate.title)
                continue
            if candidate.url in seen_urls:
                continue
            seen_urls.add(candidate.url)
            candidates.append(candidate)
        return candidates

    async def search(self, query: str) -> list[SearchResult]:
        num = min(self.settings.max_results, SEARCH_RESULT_HARD_CAP)
        hits = await retry_async(
            self.provider.search, query, num,
            policy=self.policy,
            operation=f"{self.provider.name} search",
        )
        if not isinstance(hits, list):
            raise ValidationError("Search returned an invalid results format", field="results")
        return normalize_hits(hits)

    async def find_similar_articles(self, query: str, target_count: int = 2) -> list[ReferenceCandidate]:
        """Return up to ``target_count`` candidates. Blocked searches yield []."""
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty", field="query")
        if target_count <= 0:
            return []

        logger.info("Searching for articles similar to '%s'", query)
        self.last_result_count = 0
        try:
            results = await self.search(query)
            self.last_result_count = len(results)
        except NetworkError as e:
            if e.network_code != "blocked":
                raise
            logger.warning("Search blocked, continuing without references: %s", e)
            return []
        except RateLimitError as e:
            logger.warning("Search rate limited, continuing without references: %s", e)
            return []

        candidates = self.filter_results(results)
        selected = select_diverse(candidates, target_count)
        logger.info(
            "Search found %d result(s), %d after filtering, selected %d: %s",
            len(results), len(candidates), len(selected),
            ", ".join(c.domain for c in selected) or "none",
        )
        return selected
