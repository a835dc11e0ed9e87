"""Content extraction with static-first, rendered-fallback semantics."""

from __future__ import annotations

import asyncio
import logging

from enhancer.config import ScrapingSettings
from enhancer.errors import ExtractionError, ValidationError, log_error
from enhancer.models import ExtractedContent, is_valid_url
from enhancer.retry import SCRAPING_POLICY, RetryPolicy, retry_async
from enhancer.scrape.base import ExtractionStrategy
from enhancer.scrape.rendered import BrowserSession, RenderedStrategy
from enhancer.scrape.static import StaticStrategy

logger = logging.getLogger(__name__)


def _reason(exc: BaseException) -> str:
    return getattr(exc, "reason", None) or getattr(exc, "network_code", None) \
        or getattr(exc, "code", None) or type(exc).__name__


class ContentExtractor:
    """Turns reference URLs into ExtractedContent.

    Owns the browser session used by the rendered strategy; call :meth:`close`
    once the run is over.
    """

    def __init__(
        self,
        settings: ScrapingSettings,
        policy: RetryPolicy | None = None,
        static: ExtractionStrategy | None = None,
        rendered: ExtractionStrategy | None = None,
    ):
        self.settings = settings
        self.policy = policy or SCRAPING_POLICY.with_attempts(settings.max_attempts)
        self.static = static or StaticStrategy(settings)
        self.rendered = rendered or RenderedStrategy(settings, BrowserSession(settings))

    def should_render(self, exc: BaseException) -> bool:
        """Whether a static failure is worth a browser attempt.

        Definitive client errors (404, 410, ...) are not, unless the status is
        one of the configured block-like codes.
        """
        if getattr(exc, "reason", None) == "invalid_url":
            return False
        status = getattr(exc, "status_code", None)
        if status is not None and 400 <= status < 500:
            return status in self.settings.render_fallback_statuses
        return True

    async def _attempt(self, strategy: ExtractionStrategy, url: str) -> ExtractedContent:
        return await retry_async(
            strategy.extract, url,
            policy=self.policy,
            operation=f"{strategy.method} extraction of {url}",
        )

    async def extract(self, url: str) -> ExtractedContent:
        if not isinstance(url, str) or not is_valid_url(url.strip()):
            raise ExtractionError(f"Invalid URL: {url!r}", url=str(url), reason="invalid_url")
        url = url.strip()

        try:
            content = await self._attempt(self.static, url)
            logger.info("Extracted %d chars from %s (static)", len(content.content), url)
            return content
        except Exception as e:
            static_error = e

        if not self.should_render(static_error):
            reason = _reason(static_error)
            raise ExtractionError(
                f"{reason.replace('_', ' ').capitalize()}: {url} ({static_error})",
                url=url,
                reason=reason,
                status_code=getattr(static_error, "status_code", None),
            ) from static_error

        logger.info(
            "Static extraction failed for %s (%s), trying rendered", url, _reason(static_error),
        )
        try:
            content = await self._attempt(self.rendered, url)
            logger.info("Extracted %d chars from %s (rendered)", len(content.content), url)
            return content
        except Exception as e:
            raise ExtractionError(
                f"All extraction methods failed for {url}: "
                f"static: {static_error}; rendered: {e}",
                url=url,
                reason=f"static={_reason(static_error)}; rendered={_reason(e)}",
                status_code=getattr(static_error, "status_code", None),
            ) from e

    async def extract_many(
        self, urls: list[str], batch_size: int | None = None,
    ) -> list[ExtractedContent]:
        """Extract in fixed-size concurrent batches; individual failures are dropped.

        ``batch_size`` overrides ``scraping.batch_size`` for this call.
        """
        if not isinstance(urls, (list, tuple)) or not all(isinstance(u, str) for u in urls):
            raise ValidationError("URLs must be a list of strings", field="urls")
        if batch_size is not None and batch_size <= 0:
            raise ValidationError("Batch size must be positive", field="batch_size")

        results: list[ExtractedContent] = []
        size = batch_size or self.settings.batch_size
        batches = [urls[i:i + size] for i in range(0, len(urls), size)]

        for index, batch in enumerate(batches):
            logger.info(
                "Scraping batch %d/%d (%d URL(s))", index + 1, len(batches), len(batch),
            )
            outcomes = await asyncio.gather(
                *(self.extract(url) for url in batch), return_exceptions=True,
            )
            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, ExtractedContent):
                    results.append(outcome)
                elif isinstance(outcome, Exception):
                    log_error(logger, outcome, "extraction", url=url)
                else:
                    raise outcome

            if index < len(batches) - 1 and self.settings.batch_delay > 0:
                await asyncio.sleep(self.settings.batch_delay)

        logger.info("Extracted %d/%d URL(s)", len(results), len(urls))
        return results

    async def close(self) -> None:
        await self.rendered.close()
        await self.static.close()
