"""Shared HTML post-processing: noise removal, title/content selection, normalization.

Both extraction strategies hand their HTML snapshot to :func:`build_content`,
so selector priority lives in exactly one place. Each selector list is tried
in order and the first match wins.
"""

from __future__ import annotations

import logging
import re

import trafilatura
from bs4 import BeautifulSoup, NavigableString

from enhancer.config import ScrapingSettings
from enhancer.errors import ValidationError
from enhancer.models import ExtractedContent, extract_domain

logger = logging.getLogger(__name__)

NOISE_SELECTORS = (
    "script", "style", "noscript", "nav", "header", "footer",
    ".advertisement", ".ads", ".ad", ".sidebar", ".social-share",
    ".comments", ".comment", ".related-posts", ".newsletter",
    ".popup", ".modal", ".cookie-notice", ".cookie-banner",
    ".breadcrumb", ".navigation", ".menu", ".widget", ".promo",
    ".banner", ".subscribe",
)

TITLE_SELECTORS = (
    "h1", ".post-title", ".entry-title", ".article-title", "title",
    ".title", "header h1", ".page-title",
)

CONTENT_SELECTORS = (
    "article", '[role="main"]', ".post-content", ".entry-content",
    ".article-content", ".content", ".post-body", ".article-body",
    "main", "#content", ".main-content",
)

# Elements after which a line break is inserted so get_text keeps block structure
BLOCK_TAGS = (
    "p", "div", "section", "article", "main", "li", "ul", "ol", "blockquote",
    "pre", "table", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "br",
)

UNTITLED = "Untitled"

_INLINE_SPACE = re.compile(r"[^\S\n]+")
_BLANK_RUNS = re.compile(r"\n\s*\n+")


def normalize_text(text: str, max_length: int) -> str:
    """Collapse whitespace, keep at most one blank line between blocks, trim, cap."""
    text = _INLINE_SPACE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_RUNS.sub("\n\n", text).strip()
    return text[:max_length]


def _one_line(text: str) -> str:
    return " ".join(text.split())


def remove_noise(soup: BeautifulSoup) -> None:
    for selector in NOISE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()


def select_title(soup: BeautifulSoup) -> str:
    for selector in TITLE_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        title = _one_line(element.get_text(" "))
        if title:
            return title
    return ""


def select_content(soup: BeautifulSoup, substantial_length: int) -> str:
    """First content container with substantial text, else all paragraphs."""
    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        text = element.get_text().strip()
        if len(_one_line(text)) > substantial_length:
            logger.debug("Content matched selector %s", selector)
            return text

    paragraphs = [_one_line(p.get_text()) for p in soup.find_all("p")]
    return "\n\n".join(p for p in paragraphs if p)


def _mark_blocks(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(list(BLOCK_TAGS)):
        tag.append(NavigableString("\n\n"))


def parse_html(html: str, settings: ScrapingSettings) -> tuple[str, str]:
    """Return (title, normalized content) from a raw HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    remove_noise(soup)
    title = select_title(soup)
    _mark_blocks(soup)
    content = normalize_text(
        select_content(soup, settings.substantial_length),
        settings.max_content_length,
    )

    if len(content) < settings.min_content_length and settings.trafilatura_fallback:
        fallback = trafilatura.extract(html, include_comments=False, include_tables=False)
        if fallback:
            fallback = normalize_text(fallback, settings.max_content_length)
            if len(fallback) > len(content):
                logger.debug("Selector content too short, using trafilatura text")
                content = fallback

    return title, content


def build_content(
    url: str,
    html: str,
    settings: ScrapingSettings,
    method: str,
) -> ExtractedContent:
    """Parse an HTML snapshot into ExtractedContent, enforcing the minimum length."""
    title, content = parse_html(html, settings)
    if len(content) < settings.min_content_length:
        raise ValidationError(
            f"Insufficient content from {url}: {len(content)} chars "
            f"(minimum {settings.min_content_length})",
            field="content",
            details={"url": url, "length": len(content), "method": method},
        )
    return ExtractedContent(
        url=url,
        title=title or UNTITLED,
        content=content,
        domain=extract_domain(url),
        method=method,
    )
