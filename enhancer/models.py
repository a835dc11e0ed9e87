"""Core data models for the enhancement pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from urllib.parse import urlparse


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_domain(url: str) -> str:
    """Lowercased host with any leading ``www.`` removed; ``unknown`` if unparsable."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return "unknown"
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or "unknown"


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class SourceArticle:
    """The article to enhance, as read from the backend."""

    id: int | str
    title: str
    content: str
    author: str | None = None
    created_at: str | None = None


@dataclass
class SearchResult:
    """A raw search hit, normalized."""

    url: str
    title: str
    snippet: str = ""


@dataclass
class ReferenceCandidate:
    """A filtered search hit eligible for scraping and citation."""

    url: str
    title: str
    domain: str
    snippet: str = ""

    @classmethod
    def from_result(cls, result: SearchResult) -> ReferenceCandidate:
        return cls(
            url=result.url,
            title=result.title,
            domain=extract_domain(result.url),
            snippet=result.snippet,
        )


@dataclass
class ExtractedContent:
    """Readable text scraped from one reference URL."""

    url: str
    title: str
    content: str
    domain: str
    method: str  # static, rendered
    scraped_at: datetime = field(default_factory=utcnow)


@dataclass
class Reference:
    """A citation carried in enhanced-article metadata."""

    title: str
    domain: str
    url: str


@dataclass
class EnhancementMetadata:
    source_article_id: int | str
    enhancement_type: str
    model_used: str
    enhanced_at: datetime = field(default_factory=utcnow)
    references: list[Reference] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "ai_enhanced": True,
            "enhancement_type": self.enhancement_type,
            "original_article_id": self.source_article_id,
            "enhanced_at": self.enhanced_at.isoformat(),
            "model_used": self.model_used,
            "references": [asdict(ref) for ref in self.references],
            "enhancement_stats": dict(self.stats),
        }


@dataclass
class EnhancedArticle:
    """The rewritten article, ready for publishing."""

    title: str
    content: str
    metadata: EnhancementMetadata


@dataclass
class PublishResult:
    id: int | str
    action: str  # create, update
    at: datetime = field(default_factory=utcnow)
    record: dict = field(default_factory=dict)


@dataclass
class RunSummary:
    """Record of a single pipeline execution."""

    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None
    status: str = "running"  # running, completed, failed
    mode: str = "comprehensive"
    article_id: int | str | None = None
    article_title: str = ""
    search_results_found: int = 0
    references_selected: int = 0
    scraped_ok: int = 0
    scraped_failed: int = 0
    enhanced_title: str = ""
    enhanced_length: int = 0
    has_references: bool = False
    llm_tokens_used: int = 0
    published: PublishResult | None = None
    failed_step: str | None = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or utcnow()
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        if self.published:
            data["published"] = {
                "id": self.published.id,
                "action": self.published.action,
                "at": self.published.at.isoformat(),
            }
        data["duration_seconds"] = round(self.duration_seconds, 2)
        return data


@dataclass
class BatchSummary:
    runs: list[RunSummary] = field(default_factory=list)
    requested: int = 0

    @property
    def succeeded(self) -> list[RunSummary]:
        return [r for r in self.runs if r.status == "completed"]

    @property
    def failed(self) -> list[RunSummary]:
        return [r for r in self.runs if r.status == "failed"]

    @property
    def success_rate(self) -> int:
        if not self.requested:
            return 0
        return round(100 * len(self.succeeded) / self.requested)
