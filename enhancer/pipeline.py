"""Pipeline orchestrator: fetch, search, scrape, enhance, publish."""

from __future__ import annotations

import asyncio
import logging

from enhancer.backend.publish import PublishGateway
from enhancer.backend.source import SourceGateway
from enhancer.config import Settings
from enhancer.errors import (
    AuthenticationError,
    EnhancerError,
    NotFoundError,
    OperationTimeoutError,
    log_error,
    user_message,
)
from enhancer.llm import get_provider
from enhancer.models import (
    BatchSummary,
    EnhancedArticle,
    EnhancementMetadata,
    ExtractedContent,
    ReferenceCandidate,
    RunSummary,
    SourceArticle,
    utcnow,
)
from enhancer.retry import is_not_client_error
from enhancer.scrape.extractor import ContentExtractor
from enhancer.search.finder import ReferenceFinder
from enhancer.synthesize.rewriter import ContentRewriter

logger = logging.getLogger(__name__)

STEP_GUIDANCE = {
    "fetch": "Article fetching failed - check backend API connectivity and configuration",
    "search": "Search failed - check network connectivity and the search API key",
    "scrape": "Content scraping failed - target sites may be blocking requests",
    "enhance": "AI enhancement failed - check the LLM API key and connectivity",
    "publish": "Publishing failed - check backend API permissions and article validation",
}

SELF_TEST_URL = "https://example.com"
SELF_TEST_TIMEOUT = 60.0


def _caused_by(exc: BaseException | None, kind: type) -> bool:
    while exc is not None:
        if isinstance(exc, kind):
            return True
        exc = exc.__cause__
    return False


def guidance(step: str | None, exc: BaseException) -> str:
    """Remediation hint for a failure at ``step``."""
    if _caused_by(exc, AuthenticationError):
        return f"Authentication failed during {step or 'the run'} - check API key"
    if isinstance(exc, OperationTimeoutError) and exc.operation == "pipeline run":
        return "The run exceeded pipeline.run_timeout - raise it or check slow services"
    return STEP_GUIDANCE.get(step or "", "Check the error details above and the configuration")


class RunFailedError(EnhancerError):
    """A pipeline run aborted. The original error is ``__cause__``."""

    code = "RUN_FAILED"

    def __init__(self, summary: RunSummary, step: str | None, cause: BaseException):
        super().__init__(user_message(cause))
        self.summary = summary
        self.step = step
        self.guidance = guidance(step, cause)


def _with_candidate_titles(
    contents: list[ExtractedContent],
    candidates: list[ReferenceCandidate],
) -> list[ExtractedContent]:
    titles = {c.url: c.title for c in candidates}
    for content in contents:
        if content.title == "Untitled" and titles.get(content.url):
            content.title = titles[content.url]
    return contents


class EnhancementPipeline:
    """Wires the components together. Every collaborator can be injected for tests."""

    def __init__(
        self,
        settings: Settings,
        source: SourceGateway | None = None,
        finder: ReferenceFinder | None = None,
        extractor: ContentExtractor | None = None,
        rewriter: ContentRewriter | None = None,
        publisher: PublishGateway | None = None,
    ):
        self.settings = settings
        policy = settings.retry_policy()
        self.source = source or SourceGateway(settings.backend, policy)
        self.finder = finder or ReferenceFinder(settings.search, policy=policy)
        self.extractor = extractor or ContentExtractor(
            settings.scraping,
            policy=policy.with_predicate(is_not_client_error).with_attempts(
                settings.scraping.max_attempts,
            ),
        )
        self.rewriter = rewriter or ContentRewriter(
            get_provider(settings.llm, policy), settings.llm, settings.enhancement,
        )
        self.publisher = publisher or PublishGateway(settings.backend, settings.publish, policy)
        self.current_step: str | None = None

    async def close(self) -> None:
        """Release the shared browser. Safe to call more than once."""
        try:
            await self.extractor.close()
        except Exception:
            logger.warning("Cleanup failed", exc_info=True)

    # --- Single run ---

    async def run(
        self,
        article_id: int | str | None = None,
        article: SourceArticle | None = None,
        mode: str | None = None,
        publish_mode: str | None = None,
        skip_publishing: bool | None = None,
    ) -> RunSummary:
        """Enhance one article. Raises RunFailedError if any step fails fatally."""
        try:
            return await self._guarded_run(
                article_id, article, mode, publish_mode, skip_publishing,
            )
        finally:
            await self.close()

    async def _guarded_run(self, article_id, article, mode, publish_mode, skip_publishing) -> RunSummary:
        summary = RunSummary(mode=mode or self.settings.enhancement.mode)
        self.current_step = None
        timeout = self.settings.pipeline.run_timeout
        try:
            await asyncio.wait_for(
                self._run_steps(summary, article_id, article, publish_mode, skip_publishing),
                timeout=timeout,
            )
        except EnhancerError as e:
            raise self._fail(summary, e) from e
        except asyncio.TimeoutError:
            # OperationTimeoutError is handled above, so this is the run deadline
            exc = OperationTimeoutError(
                f"Run exceeded {timeout:g}s during {self.current_step or 'startup'}",
                operation="pipeline run", timeout=timeout,
            )
            raise self._fail(summary, exc) from None
        except Exception as e:
            raise self._fail(summary, e) from e
        return summary

    def _fail(self, summary: RunSummary, exc: BaseException) -> RunFailedError:
        summary.status = "failed"
        summary.finished_at = utcnow()
        summary.failed_step = self.current_step
        summary.error = str(exc)
        log_error(logger, exc, f"pipeline step '{self.current_step}'", article=summary.article_id)
        error = RunFailedError(summary, self.current_step, exc)
        logger.error("Guidance: %s", error.guidance)
        return error

    async def _run_steps(
        self,
        summary: RunSummary,
        article_id,
        article: SourceArticle | None,
        publish_mode: str | None,
        skip_publishing: bool | None,
    ) -> None:
        cfg = self.settings
        publish_mode = publish_mode or cfg.publish.mode
        skip = cfg.publish.skip if skip_publishing is None else skip_publishing

        # --- Fetch ---
        self.current_step = "fetch"
        if article is None:
            if article_id is not None:
                article = await self.source.fetch_by_id(article_id)
            else:
                article = await self.source.fetch_latest()
        if article is None:
            raise NotFoundError("No articles available to enhance", service="Backend API")
        summary.article_id = article.id
        summary.article_title = article.title
        logger.info("Processing article %s: '%s'", article.id, article.title)

        # --- Search ---
        self.current_step = "search"
        candidates = await self.finder.find_similar_articles(
            article.title, cfg.pipeline.max_references,
        )
        summary.search_results_found = self.finder.last_result_count
        summary.references_selected = len(candidates)

        # --- Scrape ---
        self.current_step = "scrape"
        contents: list[ExtractedContent] = []
        if candidates:
            contents = await self.extractor.extract_many([c.url for c in candidates])
            contents = _with_candidate_titles(contents, candidates)
        else:
            logger.warning("No reference candidates, enhancing without references")
        summary.scraped_ok = len(contents)
        summary.scraped_failed = len(candidates) - len(contents)

        # --- Enhance ---
        self.current_step = "enhance"
        enhanced = await self.rewriter.enhance(article, contents, summary.mode)
        summary.enhanced_title = enhanced.title
        summary.enhanced_length = len(enhanced.content)
        summary.has_references = bool(enhanced.metadata.references)
        stats = enhanced.metadata.stats
        summary.llm_tokens_used = stats.get("input_tokens", 0) + stats.get("output_tokens", 0)

        # --- Publish ---
        self.current_step = "publish"
        if skip:
            logger.info("Publishing skipped")
        elif publish_mode == "update":
            summary.published = await self.publisher.update(article.id, enhanced)
        else:
            summary.published = await self.publisher.publish(enhanced)

        self.current_step = "completed"
        summary.status = "completed"
        summary.finished_at = utcnow()
        logger.info(
            "Run completed in %.1fs: %d search result(s), %d/%d scraped, %d chars%s",
            summary.duration_seconds, summary.search_results_found,
            summary.scraped_ok, summary.references_selected, summary.enhanced_length,
            f", published as {summary.published.id}" if summary.published else "",
        )

    # --- Batch ---

    async def run_batch(
        self,
        count: int | None = None,
        mode: str | None = None,
        publish_mode: str | None = None,
        skip_publishing: bool | None = None,
        continue_on_error: bool | None = None,
    ) -> BatchSummary:
        """Enhance up to ``count`` recent articles one after another."""
        cfg = self.settings.pipeline
        count = count or cfg.batch_count
        if continue_on_error is None:
            continue_on_error = cfg.continue_on_error

        batch = BatchSummary(requested=count)
        try:
            self.current_step = "fetch"
            articles = await self.source.fetch_recent(count)
            batch.requested = len(articles)
            logger.info("Batch processing %d article(s)", len(articles))

            for index, article in enumerate(articles):
                if index > 0 and cfg.inter_run_delay > 0:
                    await asyncio.sleep(cfg.inter_run_delay)
                try:
                    batch.runs.append(await self._guarded_run(
                        None, article, mode, publish_mode, skip_publishing,
                    ))
                except RunFailedError as e:
                    batch.runs.append(e.summary)
                    if not continue_on_error:
                        raise
                    logger.warning("Continuing batch after failure on article %s", article.id)
        finally:
            await self.close()

        logger.info(
            "Batch finished: %d succeeded, %d failed (%d%%)",
            len(batch.succeeded), len(batch.failed), batch.success_rate,
        )
        return batch

    # --- Self test ---

    async def self_test(self) -> dict[str, bool]:
        """Probe each component once. Returns component -> passed."""
        checks = {
            "backend": self._check_backend,
            "search": self._check_search,
            "scraping": self._check_scraping,
            "llm": self._check_llm,
            "publisher": self._check_publisher,
        }
        results: dict[str, bool] = {}
        try:
            for name, check in checks.items():
                try:
                    await asyncio.wait_for(check(), timeout=SELF_TEST_TIMEOUT)
                    results[name] = True
                    logger.info("Self-test %s: passed", name)
                except Exception as e:
                    results[name] = False
                    logger.error("Self-test %s: failed - %s", name, e)
        finally:
            await self.close()
        return results

    async def _check_backend(self) -> None:
        await self.source.fetch_latest()

    async def _check_search(self) -> None:
        await self.finder.search("test search")

    async def _check_scraping(self) -> None:
        await self.extractor.extract(SELF_TEST_URL)

    async def _check_llm(self) -> None:
        sample = SourceArticle(
            id="self-test",
            title="Self test",
            content="Briefly restructure this sentence under a heading.",
        )
        await self.rewriter.provider.complete(
            self.rewriter.build_prompt(sample, [], "structure"), max_tokens=50,
        )

    async def _check_publisher(self) -> None:
        sample = EnhancedArticle(
            title="Self test",
            content="## Heading\n\nBody text for validation only.",
            metadata=EnhancementMetadata(
                source_article_id="self-test", enhancement_type="structure",
                model_used=self.settings.llm.model,
            ),
        )
        self.publisher.validate_for_publishing(sample)


async def run_pipeline(settings: Settings, **kwargs) -> RunSummary:
    """Build a pipeline from settings and execute a single run."""
    return await EnhancementPipeline(settings).run(**kwargs)
