"""Prompt templates for article enhancement, one per enhancement mode."""

NO_REFERENCES = "No reference articles provided."

REFERENCE_ENTRY = """Reference {index}:
Title: {title}
Domain: {domain}
URL: {url}
Content: {excerpt}...
"""

REFERENCES_HEADING = "## References"

STRUCTURE = """\
You are an experienced content editor. Improve the structure and readability \
of the article below while keeping its meaning intact.

REQUIREMENTS:
1. Organize the text under clear headings (H2, H3)
2. Use bullet points and numbered lists where they help
3. Improve flow between paragraphs
4. Keep the original tone and every factual claim
5. Rewrite in your own words; never copy sentences from the references
6. End with a "References" section listing the sources as: - [Title](url) - domain

REFERENCE ARTICLES (style and extra context):
{references}

ORIGINAL ARTICLE:
Title: {title}
Content: {content}

Return the restructured article:"""

SEO = """\
You are an SEO content specialist. Improve this article for search visibility \
without sacrificing readability or accuracy.

REQUIREMENTS:
1. Make the title search-friendly but still engaging
2. Add subheadings that carry relevant keywords naturally
3. Tighten paragraph structure and add transitions
4. Preserve the original meaning and facts
5. Never stuff keywords
6. If references are given, end with a "References" section: - [Title](url) - domain

ARTICLE TO ENHANCE:
Title: {title}
Content: {content}

REFERENCE CONTEXT:
{references}

Return the SEO-optimized article:"""

COMPREHENSIVE = """\
You are a professional editor and writer. Produce a comprehensive, \
well-structured and engaging article from the original content and the \
reference material.

INSTRUCTIONS:
1. Structure: an introduction, clear H2/H3 headings, logical progression \
and a conclusion.
2. Depth: expand the key points with explanation and examples; use lists \
where they aid scanning.
3. Style: match the tone of the reference articles; prefer active voice.
4. Originality: write in your own words. Do NOT copy text from the references.
5. Accuracy: keep every fact from the original correct.
6. Citations: finish with a "References" section, one line per source, \
formatted exactly as: - [Title](url) - domain

ORIGINAL ARTICLE:
Title: {title}
Content: {content}

REFERENCE ARTICLES FOR CONTEXT AND STYLE:
{references}

Write the enhanced article:"""

TEMPLATES = {
    "structure": STRUCTURE,
    "seo": SEO,
    "comprehensive": COMPREHENSIVE,
}
