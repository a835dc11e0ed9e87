"""Tests for prompt construction, post-processing and validation of rewrites."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from enhancer.errors import AuthenticationError, EnhancementError
from enhancer.llm.base import LLMResponse
from enhancer.llm.prompts import NO_REFERENCES
from enhancer.synthesize.rewriter import (
    ContentRewriter,
    clean_content,
    extract_title,
    format_references,
    has_references_section,
)


def _rewriter(settings, text: str | None = None, error: Exception | None = None):
    provider = MagicMock()
    if error is not None:
        provider.complete = AsyncMock(side_effect=error)
    else:
        provider.complete = AsyncMock(return_value=LLMResponse(
            text=text, input_tokens=100, output_tokens=400, model="test-model",
        ))
    return ContentRewriter(provider, settings.llm, settings.enhancement), provider


@pytest.mark.asyncio
async def test_enhance_with_references_appends_section(settings, source_article, reference_contents, long_markdown):
    rewriter, provider = _rewriter(settings, long_markdown())

    enhanced = await rewriter.enhance(source_article, reference_contents)

    assert enhanced.title == "Chatbots for Small Businesses"
    assert not enhanced.content.startswith("# ")
    assert "\n\n\n" not in enhanced.content
    assert enhanced.content.endswith(
        "## References\n\n"
        "- [Chatbot Guide](https://blog-one.com/chatbots) - blog-one.com\n"
        "- [SMB AI Trends](https://news-two.org/smb-ai) - news-two.org"
    )
    meta = enhanced.metadata
    assert meta.source_article_id == 42
    assert meta.enhancement_type == "comprehensive"
    assert meta.model_used == "test-model"
    assert [r.domain for r in meta.references] == ["blog-one.com", "news-two.org"]
    assert meta.stats["output_tokens"] == 400

    prompt = provider.complete.call_args.args[0]
    assert "Reference 1:" in prompt and "Domain: blog-one.com" in prompt
    assert "Chatbots for SMBs" in prompt


@pytest.mark.asyncio
async def test_existing_references_section_not_duplicated(settings, source_article, reference_contents, long_markdown):
    rewriter, _ = _rewriter(settings, long_markdown(references=True))

    enhanced = await rewriter.enhance(source_article, reference_contents)

    assert enhanced.content.count("## References") == 1


@pytest.mark.asyncio
async def test_zero_references_uses_notice(settings, source_article, long_markdown):
    rewriter, provider = _rewriter(settings, long_markdown())

    enhanced = await rewriter.enhance(source_article, [], mode="structure")

    prompt = provider.complete.call_args.args[0]
    assert NO_REFERENCES in prompt
    assert "References" not in enhanced.content.split("\n")[-1]
    assert not has_references_section(enhanced.content)
    assert enhanced.metadata.references == []
    assert enhanced.metadata.enhancement_type == "structure"


@pytest.mark.asyncio
async def test_short_response_is_rejected(settings, source_article):
    rewriter, _ = _rewriter(settings, "# Title\n\nToo short to publish.")

    with pytest.raises(EnhancementError, match="too short"):
        await rewriter.enhance(source_article, [])


@pytest.mark.asyncio
async def test_provider_failure_wrapped(settings, source_article):
    cause = AuthenticationError("LLM authentication failed (401) - check API key", status_code=401)
    rewriter, _ = _rewriter(settings, error=cause)

    with pytest.raises(EnhancementError) as exc_info:
        await rewriter.enhance(source_article, [])
    assert exc_info.value.__cause__ is cause
    assert "check API key" in str(exc_info.value)


def test_source_content_and_excerpts_truncated(settings, source_article, reference_contents):
    rewriter, _ = _rewriter(settings, "")
    prompt = rewriter.build_prompt(source_article, reference_contents, "seo")

    block = format_references(reference_contents, 1000)
    assert block in prompt
    assert "Content: " + reference_contents[0].content[:1000] + "..." in block
    assert "SEO" in prompt


def test_unknown_mode_falls_back_to_comprehensive(settings, source_article):
    rewriter, _ = _rewriter(settings, "")
    assert "comprehensive" in rewriter.build_prompt(source_article, [], "poetry")


@pytest.mark.parametrize("text,expected", [
    ("# Heading Title\n\nBody", "Heading Title"),
    ("Title: Explicit Title\nBody", "Explicit Title"),
    ("**Bold Title**\n\nBody", "Bold Title"),
    ("\n\n## Section\nBody", None),
    ("Plain opening sentence.\n# Later heading", None),
])
def test_extract_title(text, expected):
    assert extract_title(text) == expected


def test_clean_content_strips_echoed_title_and_whitespace():
    raw = "Title: Something\n\nFirst para.   \n\n\n\nSecond para.\t\n"
    assert clean_content(raw) == "First para.\n\nSecond para."


def test_references_heading_detection():
    assert has_references_section("text\n\n## References\n\n- a")
    assert has_references_section("text\n\n**References**\n- a")
    assert has_references_section("text\n\nReferences:\n- a")
    assert not has_references_section("See the references below for details.")
