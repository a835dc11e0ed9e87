"""Tests for the headless-browser strategy and its shared session."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from enhancer.errors import NetworkError, OperationTimeoutError, ScrapingError
from enhancer.scrape.rendered import BrowserSession, RenderedStrategy

URL = "https://spa.example.com/article"


def _browser(page):
    context = AsyncMock()
    context.new_page.return_value = page
    browser = AsyncMock()
    browser.new_context.return_value = context
    return browser, context


def _session(browser):
    session = MagicMock()
    session.get = AsyncMock(return_value=browser)
    session.close = AsyncMock()
    return session


@pytest.fixture
def page(article_html):
    page = AsyncMock()
    page.goto.return_value = MagicMock(status=200)
    page.content.return_value = article_html
    return page


@pytest.mark.asyncio
async def test_rendered_extracts_from_dom_snapshot(settings, page):
    browser, context = _browser(page)
    strategy = RenderedStrategy(settings.scraping, _session(browser))

    content = await strategy.extract(URL)

    assert content.method == "rendered"
    assert content.title == "Chatbots for Small Business"
    page.goto.assert_awaited_once_with(URL, wait_until="networkidle", timeout=5000)
    kwargs = browser.new_context.call_args.kwargs
    assert kwargs["viewport"] == {"width": 1366, "height": 768}
    assert kwargs["user_agent"] in settings.scraping.user_agents
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_rendered_error_status_raises(settings, page):
    page.goto.return_value = MagicMock(status=403)
    browser, context = _browser(page)
    strategy = RenderedStrategy(settings.scraping, _session(browser))

    with pytest.raises(ScrapingError) as exc_info:
        await strategy.fetch_html(URL)

    assert exc_info.value.reason == "blocked"
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_navigation_timeout_maps_to_timeout_error(settings, page):
    page.goto.side_effect = PlaywrightTimeoutError("Timeout 5000ms exceeded")
    browser, _ = _browser(page)
    strategy = RenderedStrategy(settings.scraping, _session(browser))

    with pytest.raises(OperationTimeoutError):
        await strategy.fetch_html(URL)


@pytest.mark.asyncio
async def test_dns_failure_maps_to_network_error(settings, page):
    page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED at " + URL)
    browser, _ = _browser(page)
    strategy = RenderedStrategy(settings.scraping, _session(browser))

    with pytest.raises(NetworkError) as exc_info:
        await strategy.fetch_html(URL)
    assert exc_info.value.network_code == "dns"


@pytest.fixture
def fake_playwright():
    browser = AsyncMock()
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    with patch("enhancer.scrape.rendered.async_playwright", return_value=starter):
        yield playwright, browser


@pytest.mark.asyncio
async def test_session_launches_once_and_closes_once(settings, fake_playwright):
    playwright, browser = fake_playwright
    session = BrowserSession(settings.scraping)

    first, second = await asyncio.gather(session.get(), session.get())

    assert first is second is browser
    playwright.chromium.launch.assert_awaited_once()
    assert session.is_open

    await session.close()
    await session.close()
    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    assert not session.is_open


@pytest.mark.asyncio
async def test_session_close_failure_is_not_fatal(settings, fake_playwright):
    _, browser = fake_playwright
    browser.close.side_effect = RuntimeError("already gone")
    session = BrowserSession(settings.scraping)
    await session.get()

    await session.close()  # does not raise
    assert not session.is_open
