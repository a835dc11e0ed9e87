"""Rewrite a source article with an LLM, using scraped references for context."""

from __future__ import annotations

import logging
import re

from enhancer.config import EnhancementSettings, LLMSettings
from enhancer.errors import EnhancementError, EnhancerError
from enhancer.llm.base import BaseLLMProvider, LLMResponse
from enhancer.llm.prompts import (
    NO_REFERENCES,
    REFERENCE_ENTRY,
    REFERENCES_HEADING,
    TEMPLATES,
)
from enhancer.models import (
    EnhancedArticle,
    EnhancementMetadata,
    ExtractedContent,
    Reference,
    SourceArticle,
)

logger = logging.getLogger(__name__)

TITLE_PATTERNS = (
    re.compile(r"^#\s+(.+?)\s*#*$"),
    re.compile(r"^Title:\s*(.+)$", re.IGNORECASE),
    re.compile(r"^\*\*(.+)\*\*$"),
)

REFERENCES_PATTERN = re.compile(
    r"^\s*(?:#{1,6}\s*(?:\*\*)?References?\b|\*\*References?\*\*|References?:?\s*$)",
    re.IGNORECASE | re.MULTILINE,
)


def format_references(references: list[ExtractedContent], excerpt_length: int) -> str:
    """Render the references block for the prompt."""
    if not references:
        return NO_REFERENCES
    return "\n".join(
        REFERENCE_ENTRY.format(
            index=i,
            title=ref.title,
            domain=ref.domain,
            url=ref.url,
            excerpt=ref.content[:excerpt_length],
        )
        for i, ref in enumerate(references, 1)
    )


def extract_title(text: str) -> str | None:
    """Title from the first non-empty line, if it looks like one."""
    for line in text.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        for pattern in TITLE_PATTERNS:
            match = pattern.match(line)
            if match and match.group(1).strip():
                return match.group(1).strip().strip("*").strip()
        return None
    return None


def clean_content(text: str) -> str:
    """Drop an echoed title line, collapse blank runs, trim trailing whitespace."""
    lines = text.strip().splitlines()
    if lines and extract_title(lines[0]) is not None:
        lines = lines[1:]
    text = "\n".join(line.rstrip() for line in lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def has_references_section(text: str) -> bool:
    return bool(REFERENCES_PATTERN.search(text))


def references_section(references: list[Reference]) -> str:
    lines = [f"- [{ref.title}]({ref.url}) - {ref.domain}" for ref in references]
    return f"{REFERENCES_HEADING}\n\n" + "\n".join(lines)


class ContentRewriter:
    """Builds the prompt, calls the provider, and validates the rewritten article."""

    def __init__(
        self,
        provider: BaseLLMProvider,
        llm_settings: LLMSettings,
        settings: EnhancementSettings,
    ):
        self.provider = provider
        self.llm_settings = llm_settings
        self.settings = settings

    def build_prompt(
        self,
        article: SourceArticle,
        references: list[ExtractedContent],
        mode: str,
    ) -> str:
        template = TEMPLATES.get(mode)
        if template is None:
            logger.warning("Unknown enhancement mode '%s', using comprehensive", mode)
            template = TEMPLATES["comprehensive"]
        return template.format(
            title=article.title,
            content=article.content[: self.settings.source_excerpt],
            references=format_references(references, self.settings.reference_excerpt),
        )

    async def enhance(
        self,
        article: SourceArticle,
        references: list[ExtractedContent],
        mode: str | None = None,
    ) -> EnhancedArticle:
        mode = mode or self.settings.mode
        model = self.llm_settings.model
        logger.info(
            "Enhancing article '%s' (%s, %d reference(s))",
            article.title, mode, len(references),
        )

        prompt = self.build_prompt(article, references, mode)
        try:
            response: LLMResponse = await self.provider.complete(
                prompt,
                model=model,
                temperature=self.llm_settings.temperature,
                max_tokens=self.llm_settings.max_tokens,
            )
        except EnhancerError as e:
            raise EnhancementError(
                f"AI enhancement failed for '{article.title}': {e.message}", model=model,
            ) from e

        cited = [Reference(title=r.title, domain=r.domain, url=r.url) for r in references]
        content = clean_content(response.text)
        if cited and not has_references_section(content):
            logger.debug("Appending generated references section")
            content = f"{content}\n\n{references_section(cited)}"

        enhanced = EnhancedArticle(
            title=extract_title(response.text) or article.title,
            content=content,
            metadata=EnhancementMetadata(
                source_article_id=article.id,
                enhancement_type=mode,
                model_used=response.model or model,
                references=cited,
                stats={
                    "original_length": len(article.content),
                    "enhanced_length": len(content),
                    "length_increase_pct": round(
                        100 * (len(content) - len(article.content)) / max(len(article.content), 1)
                    ),
                    "references_used": len(cited),
                    "has_references": has_references_section(content),
                    "input_tokens": response.input_tokens,
                    "output_tokens": response.output_tokens,
                },
            ),
        )
        self.validate(enhanced)
        logger.info("Enhanced article '%s' (%d chars)", enhanced.title, len(enhanced.content))
        return enhanced

    def validate(self, enhanced: EnhancedArticle) -> None:
        problems = []
        if not enhanced.title.strip():
            problems.append("title is empty")
        if len(enhanced.content) < self.settings.min_length:
            problems.append(
                f"content too short ({len(enhanced.content)} < {self.settings.min_length} chars)"
            )
        if enhanced.metadata.references and not has_references_section(enhanced.content):
            problems.append("references were supplied but no References section is present")
        if problems:
            raise EnhancementError(
                "Enhanced article failed validation: " + "; ".join(problems),
                model=enhanced.metadata.model_used,
            )
