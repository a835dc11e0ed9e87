#!/usr/bin/env python3
"""Live check of reference search and page extraction.

Run from a machine with internet access (not sandboxed):

    python scripts/check_sources.py --query "chatbots for small business"
    python scripts/check_sources.py --url https://example.com/post
    python scripts/check_sources.py --url https://example.com/post --static-only
"""

from __future__ import annotations

import argparse
import asyncio
import os

from enhancer.config import get_settings
from enhancer.errors import EnhancerError
from enhancer.retry import is_not_client_error
from enhancer.scrape.extractor import ContentExtractor
from enhancer.scrape.static import StaticStrategy
from enhancer.search.finder import ReferenceFinder


def _print_content(content) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {content.domain} via {content.method}: {len(content.content)} chars")
    print(f"{'=' * 60}")
    print(f"  Title:   {content.title[:80]}")
    print(f"  URL:     {content.url[:80]}")
    preview = content.content[:200].replace("\n", " ")
    print(f"  Content: {preview}...")


async def check_search(settings, query: str, count: int) -> list[str]:
    print(f"\n[Search] Looking for articles similar to '{query}'...")
    finder = ReferenceFinder(settings.search, policy=settings.retry_policy())
    candidates = await finder.find_similar_articles(query, count)
    print(f"  {finder.last_result_count} result(s), selected {len(candidates)}")
    for i, c in enumerate(candidates, 1):
        print(f"  {i}. {c.title[:70]} ({c.domain})")
    return [c.url for c in candidates]


async def check_urls(settings, urls: list[str], static_only: bool) -> None:
    policy = settings.retry_policy().with_predicate(is_not_client_error).with_attempts(
        settings.scraping.max_attempts,
    )
    extractor = ContentExtractor(settings.scraping, policy=policy)
    try:
        for url in urls:
            print(f"\n[Scrape] {url}")
            try:
                if static_only:
                    content = await StaticStrategy(settings.scraping).extract(url)
                else:
                    content = await extractor.extract(url)
            except EnhancerError as e:
                print(f"  FAILED [{e.code}]: {e}")
                continue
            _print_content(content)
    finally:
        await extractor.close()


async def main() -> None:
    parser = argparse.ArgumentParser(description="Check reference search and extraction")
    parser.add_argument("--query", default=None, help="Search for references to this title")
    parser.add_argument("--url", action="append", default=[], help="URL to extract (repeatable)")
    parser.add_argument("--count", type=int, default=2, help="References to select (default: 2)")
    parser.add_argument(
        "--static-only", action="store_true",
        help="Skip the headless browser fallback",
    )
    parser.add_argument(
        "--config", default=None,
        help="Config file path (default: config.yaml or CONFIG_PATH env)",
    )
    args = parser.parse_args()

    config_path = args.config or os.environ.get("CONFIG_PATH", "config.yaml")
    settings = get_settings(config_path)

    urls = list(args.url)
    if args.query:
        urls.extend(await check_search(settings, args.query, args.count))
    if not urls:
        parser.error("give --query and/or --url")

    await check_urls(settings, urls, args.static_only)
    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
