"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from enhancer.config import get_settings
from enhancer.models import ExtractedContent, SourceArticle

CONFIG_TEXT = """
backend:
  base_url: "http://backend.test/api"
  api_key: "backend-key"
  timeout: 5

llm:
  provider: "openai_compatible"
  api_key: "test-key"
  base_url: "http://llm.test/v1"
  model: "test-model"

search:
  api_key: "serper-key"
  timeout: 7
  max_results: 10

scraping:
  timeout: 5
  batch_size: 3
  batch_delay: 0
  settle_delay: 0
  trafilatura_fallback: false

retry:
  max_attempts: 3
  base_delay: 0
  max_delay: 0

enhancement:
  mode: comprehensive
  min_length: 500

pipeline:
  max_references: 2
  inter_run_delay: 0
  run_timeout: 30
"""


def _mock_client(*outcomes, method: str = "get") -> AsyncMock:
    client = AsyncMock()
    getattr(client, method).side_effect = list(outcomes)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_TEXT)
    return path


@pytest.fixture
def settings(config_path):
    """Validated settings with zero delays (no real API keys)."""
    return get_settings(config_path)


@pytest.fixture
def policy(settings):
    return settings.retry_policy()


@pytest.fixture
def article_html():
    """A blog-like page with noise around a substantial article body."""
    body = " ".join(
        f"Sentence {i} explains how small businesses deploy chatbots for support."
        for i in range(8)
    )
    return f"""
<html>
  <head><title>Doc Title | Example Blog</title></head>
  <body>
    <header><h1>Site Banner Heading</h1><nav>Home About Contact</nav></header>
    <div class="advertisement">Buy now! Limited offer!</div>
    <article>
      <h1 class="post-title">Chatbots   for Small Business</h1>
      <p>{body}</p>
      <p>Second    paragraph with   extra   spacing.</p>
      <div class="social-share">Share on Twitter</div>
    </article>
    <aside class="sidebar">Popular posts</aside>
    <script>var tracking = true;</script>
    <footer>Copyright 2024</footer>
  </body>
</html>
"""


@pytest.fixture
def source_article():
    return SourceArticle(
        id=42,
        title="Chatbots for SMBs",
        content="Chatbots help small and medium businesses answer customers. " * 35,
        author="Jane",
    )


@pytest.fixture
def reference_contents():
    return [
        ExtractedContent(
            url="https://blog-one.com/chatbots",
            title="Chatbot Guide",
            content="Guide content about chatbots. " * 60,
            domain="blog-one.com",
            method="static",
        ),
        ExtractedContent(
            url="https://news-two.org/smb-ai",
            title="SMB AI Trends",
            content="Trend content about AI adoption. " * 60,
            domain="news-two.org",
            method="rendered",
        ),
    ]


def _markdown(title: str = "Chatbots for Small Businesses", references: bool = False) -> str:
    body = "Chatbots reduce response times and cost for growing teams. " * 12
    text = f"# {title}\n\n## Introduction\n\n{body}\n\n\n\n## Benefits\n\n{body}   \n"
    if references:
        text += "\n## References\n\n- [Chatbot Guide](https://blog-one.com/chatbots) - blog-one.com\n"
    return text


@pytest.fixture
def make_client():
    """Factory for an AsyncMock standing in for ``httpx.AsyncClient`` as a context manager.

    Each call to ``method`` (default ``get``) returns or raises the next outcome.
    """
    return _mock_client


@pytest.fixture
def long_markdown():
    """Factory for LLM-style output comfortably above the minimum length."""
    return _markdown
