"""Rendered strategy: headless Chromium via Playwright, for JavaScript-heavy or guarded pages."""

from __future__ import annotations

import asyncio
import logging

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from enhancer.config import ScrapingSettings
from enhancer.errors import NetworkError, OperationTimeoutError, ScrapingError
from enhancer.scrape.base import ExtractionStrategy

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

_NETWORK_CODES = {
    "ERR_NAME_NOT_RESOLVED": "dns",
    "ERR_CONNECTION_REFUSED": "connection_refused",
    "ERR_CONNECTION_RESET": "connection_reset",
    "ERR_INTERNET_DISCONNECTED": "network",
    "ERR_TOO_MANY_REDIRECTS": "too_many_redirects",
}


class BrowserSession:
    """Lazily launched Chromium instance shared by every rendered extraction in a run.

    Concurrent callers in one extraction batch may hit ``get`` at the same
    time, so the launch is serialized. ``close`` is idempotent and never raises.
    """

    def __init__(self, settings: ScrapingSettings):
        self.settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    async def get(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                logger.info("Launching headless browser")
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=True, args=LAUNCH_ARGS,
                )
            return self._browser

    async def close(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            try:
                await browser.close()
                logger.info("Browser closed")
            except Exception:
                logger.warning("Failed to close browser", exc_info=True)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception:
                logger.warning("Failed to stop Playwright", exc_info=True)


class RenderedStrategy(ExtractionStrategy):
    """Navigate with a real browser, let the page settle, then snapshot the DOM."""

    def __init__(self, settings: ScrapingSettings, session: BrowserSession | None = None):
        super().__init__(settings)
        self.session = session or BrowserSession(settings)

    @property
    def method(self) -> str:
        return "rendered"

    async def fetch_html(self, url: str) -> str:
        browser = await self.session.get()
        width, height = self.settings.viewport
        context = await browser.new_context(
            user_agent=self.user_agent(),
            viewport={"width": width, "height": height},
        )
        try:
            page = await context.new_page()
            try:
                response = await page.goto(
                    url,
                    wait_until="networkidle",
                    timeout=self.settings.timeout * 1000,
                )
            except PlaywrightTimeoutError as e:
                raise OperationTimeoutError(
                    f"Navigation timeout: {url}", operation=url, timeout=self.settings.timeout,
                ) from e
            except PlaywrightError as e:
                raise _map_navigation_error(e, url) from e

            if response is not None and response.status >= 400:
                raise ScrapingError(
                    f"HTTP {response.status} from browser for {url}",
                    url=url,
                    reason="blocked" if response.status in (401, 403) else "http_error",
                    status_code=response.status,
                )

            # Give deferred scripts a moment to render
            await asyncio.sleep(self.settings.settle_delay)
            return await page.content()
        finally:
            await context.close()

    async def close(self) -> None:
        await self.session.close()


def _map_navigation_error(exc: PlaywrightError, url: str) -> NetworkError:
    text = str(exc)
    for marker, code in _NETWORK_CODES.items():
        if marker in text:
            return NetworkError(f"Browser navigation failed for {url}: {marker}", url, code)
    return NetworkError(f"Browser navigation failed for {url}: {exc}", url, "network")
