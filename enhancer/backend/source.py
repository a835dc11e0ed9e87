"""Read articles from the backend."""

from __future__ import annotations

import logging

from enhancer.backend.base import BackendClient, article_from_payload, unwrap
from enhancer.errors import NotFoundError, ValidationError
from enhancer.models import SourceArticle

logger = logging.getLogger(__name__)


class SourceGateway(BackendClient):
    """fetch-latest / fetch-by-id against ``/articles``."""

    async def _list(self, per_page: int) -> list:
        data = await self.request(
            "GET", "/articles",
            params={"per_page": per_page, "sort": "created_at", "order": "desc"},
        )
        items = unwrap(data)
        if items is None:
            return []
        if not isinstance(items, list):
            raise ValidationError("Unexpected article list format from backend", field="data")
        return items

    async def fetch_latest(self) -> SourceArticle | None:
        """Most recently created article, or None if there are none."""
        items = await self._list(1)
        if not items:
            logger.warning("No articles found in backend")
            return None
        article = article_from_payload(items[0])
        logger.info("Fetched latest article %s: '%s'", article.id, article.title)
        return article

    async def fetch_recent(self, limit: int) -> list[SourceArticle]:
        """Up to ``limit`` newest articles; malformed records are skipped."""
        articles = []
        for item in await self._list(limit):
            try:
                articles.append(article_from_payload(item))
            except ValidationError as e:
                logger.warning("Skipping malformed article record: %s", e)
        logger.info("Fetched %d recent article(s)", len(articles))
        return articles[:limit]

    async def fetch_by_id(self, article_id: int | str) -> SourceArticle:
        try:
            data = await self.request("GET", f"/articles/{article_id}")
        except NotFoundError as e:
            raise NotFoundError(
                f"Article {article_id} not found", service=e.service, status_code=404,
                payload=e.payload,
            ) from e
        article = article_from_payload(unwrap(data))
        logger.info("Fetched article %s: '%s'", article.id, article.title)
        return article
