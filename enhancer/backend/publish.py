"""Write enhanced articles back to the backend."""

from __future__ import annotations

import logging
import re

from enhancer.backend.base import BackendClient, unwrap
from enhancer.config import BackendSettings, PublishSettings
from enhancer.errors import ApiError, ValidationError
from enhancer.models import EnhancedArticle, PublishResult, utcnow
from enhancer.retry import RetryPolicy
from enhancer.synthesize.rewriter import has_references_section

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^#{1,3}\s+.+$", re.MULTILINE)


class PublishGateway(BackendClient):
    """create (POST) / update (PUT) against ``/articles``."""

    def __init__(
        self,
        settings: BackendSettings,
        publish: PublishSettings,
        policy: RetryPolicy | None = None,
    ):
        super().__init__(settings, policy)
        self.publish_settings = publish

    def validate_for_publishing(self, enhanced: EnhancedArticle) -> None:
        """Pre-publish content checks; raises ValidationError listing every problem."""
        cfg = self.publish_settings
        problems = []
        if not enhanced.title.strip():
            problems.append("title is empty")
        if not enhanced.content.strip():
            problems.append("content is empty")
        elif len(enhanced.content) > cfg.max_length:
            problems.append(f"content exceeds {cfg.max_length} chars")
        if cfg.require_headings and not HEADING_PATTERN.search(enhanced.content):
            problems.append("content has no headings")
        if enhanced.metadata.references and not has_references_section(enhanced.content):
            problems.append("references listed in metadata but no References section")
        if problems:
            raise ValidationError(
                "Article not ready for publishing: " + "; ".join(problems),
                field="content",
                details=problems,
            )

    def build_payload(self, enhanced: EnhancedArticle) -> dict:
        cfg = self.publish_settings
        return {
            "title": enhanced.title,
            "content": enhanced.content,
            "status": cfg.status,
            "author": cfg.author,
            "category": cfg.category,
            "tags": list(cfg.tags),
            "metadata": enhanced.metadata.to_payload(),
            "published_at": utcnow().isoformat(),
        }

    def _result(self, data, action: str, fallback_id=None) -> PublishResult:
        record = unwrap(data)
        if not isinstance(record, dict):
            record = {}
        record_id = record.get("id", fallback_id)
        if record_id is None:
            raise ApiError("Backend did not return an article id", service="Backend API")
        return PublishResult(id=record_id, action=action, record=record)

    async def publish(self, enhanced: EnhancedArticle) -> PublishResult:
        """Create a new article record."""
        self.validate_for_publishing(enhanced)
        data = await self.request(
            "POST", "/articles", json=self.build_payload(enhanced), expected=(200, 201),
        )
        result = self._result(data, "create")
        logger.info("Published article %s: '%s'", result.id, enhanced.title)
        return result

    async def update(self, article_id: int | str, enhanced: EnhancedArticle) -> PublishResult:
        """Overwrite an existing article record."""
        self.validate_for_publishing(enhanced)
        payload = self.build_payload(enhanced)
        payload["updated_at"] = utcnow().isoformat()
        data = await self.request("PUT", f"/articles/{article_id}", json=payload)
        result = self._result(data, "update", fallback_id=article_id)
        logger.info("Updated article %s: '%s'", result.id, enhanced.title)
        return result
