"""Load configuration from YAML with env var substitution and validate it once."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from enhancer.errors import ConfigurationError
from enhancer.retry import RetryPolicy

ENHANCEMENT_MODES = ("structure", "seo", "comprehensive")
PUBLISH_MODES = ("create", "update")
SEARCH_RESULT_HARD_CAP = 20

DEFAULT_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

DEFAULT_EXCLUDED_DOMAINS = (
    "youtube.com", "youtu.be", "facebook.com", "twitter.com", "x.com",
    "instagram.com", "linkedin.com", "pinterest.com", "reddit.com",
    "tiktok.com", "snapchat.com", "wikipedia.org",
)

DEFAULT_EXCLUDED_EXTENSIONS = (
    ".pdf", ".doc", ".docx", ".ppt", ".pptx", ".xls", ".xlsx", ".zip", ".rar",
    ".mp4", ".mp3", ".avi", ".mov", ".jpg", ".jpeg", ".png", ".gif",
)


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} patterns in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")
        match = pattern.search(value)
        if match:
            env_key = match.group(1)
            env_val = os.environ.get(env_key, "")
            # If the entire string is a single env var, return the resolved value
            if match.group(0) == value:
                return env_val
            return pattern.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return value
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")
    return _resolve_env_vars(raw)


# --- Typed settings ---


@dataclass(frozen=True)
class BackendSettings:
    base_url: str
    api_key: str = ""
    timeout: float = 30.0


@dataclass(frozen=True)
class LLMSettings:
    api_key: str
    provider: str = "openai_compatible"
    base_url: str = "https://api.groq.com/openai/v1"
    model: str = "llama-3.1-8b-instant"
    timeout: float = 30.0
    max_tokens: int = 4000
    temperature: float = 0.7


@dataclass(frozen=True)
class SearchSettings:
    api_key: str
    provider: str = "serper"
    max_results: int = 10
    max_attempts: int = 2
    timeout: float = 30.0
    min_title_length: int = 10
    excluded_domains: tuple[str, ...] = DEFAULT_EXCLUDED_DOMAINS
    excluded_extensions: tuple[str, ...] = DEFAULT_EXCLUDED_EXTENSIONS


@dataclass(frozen=True)
class ScrapingSettings:
    timeout: float = 30.0
    max_redirects: int = 5
    min_content_length: int = 100
    max_content_length: int = 50000
    substantial_length: int = 200
    batch_size: int = 3
    batch_delay: float = 1.0
    settle_delay: float = 2.0
    max_attempts: int = 2
    viewport: tuple[int, int] = (1366, 768)
    user_agents: tuple[str, ...] = DEFAULT_USER_AGENTS
    render_fallback_statuses: frozenset[int] = frozenset({401, 403, 406, 429, 451})
    trafilatura_fallback: bool = True


@dataclass(frozen=True)
class RetrySettings:
    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0

    def policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
        )


@dataclass(frozen=True)
class EnhancementSettings:
    mode: str = "comprehensive"
    min_length: int = 500
    source_excerpt: int = 8000
    reference_excerpt: int = 1000


@dataclass(frozen=True)
class PublishSettings:
    mode: str = "create"
    skip: bool = False
    status: str = "published"
    author: str = "AI Enhancement System"
    category: str = "Enhanced Articles"
    tags: tuple[str, ...] = ("ai-enhanced", "automated")
    require_headings: bool = True
    max_length: int = 50000


@dataclass(frozen=True)
class PipelineSettings:
    max_references: int = 2
    batch_count: int = 1
    inter_run_delay: float = 5.0
    continue_on_error: bool = True
    run_timeout: float = 600.0


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    file: str = ""


@dataclass(frozen=True)
class Settings:
    """Validated, immutable configuration passed into every component."""

    backend: BackendSettings
    llm: LLMSettings
    search: SearchSettings
    scraping: ScrapingSettings = field(default_factory=ScrapingSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    enhancement: EnhancementSettings = field(default_factory=EnhancementSettings)
    publish: PublishSettings = field(default_factory=PublishSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Settings:
        """Build settings from a raw config mapping, collecting every problem."""
        reader = _Reader(config)
        settings = cls(
            backend=BackendSettings(
                base_url=reader.url("backend", "base_url"),
                api_key=reader.text("backend", "api_key", ""),
                timeout=reader.positive("backend", "timeout", 30.0),
            ),
            llm=LLMSettings(
                api_key=reader.text("llm", "api_key", required=True),
                provider=reader.text("llm", "provider", "openai_compatible"),
                base_url=reader.url("llm", "base_url", "https://api.groq.com/openai/v1"),
                model=reader.text("llm", "model", "llama-3.1-8b-instant"),
                timeout=reader.positive("llm", "timeout", 30.0),
                max_tokens=int(reader.positive("llm", "max_tokens", 4000)),
                temperature=reader.number("llm", "temperature", 0.7),
            ),
            search=SearchSettings(
                api_key=reader.text("search", "api_key", required=True),
                provider=reader.text("search", "provider", "serper"),
                max_results=min(
                    int(reader.positive("search", "max_results", 10)),
                    SEARCH_RESULT_HARD_CAP,
                ),
                max_attempts=int(reader.positive("search", "max_attempts", 2)),
                timeout=reader.positive("search", "timeout", 30.0),
                min_title_length=int(reader.number("search", "min_title_length", 10)),
                excluded_domains=reader.str_tuple(
                    "search", "excluded_domains", DEFAULT_EXCLUDED_DOMAINS,
                ),
                excluded_extensions=reader.str_tuple(
                    "search", "excluded_extensions", DEFAULT_EXCLUDED_EXTENSIONS,
                ),
            ),
            scraping=ScrapingSettings(
                timeout=reader.positive("scraping", "timeout", 30.0),
                max_redirects=int(reader.number("scraping", "max_redirects", 5)),
                min_content_length=int(reader.positive("scraping", "min_content_length", 100)),
                max_content_length=int(reader.positive("scraping", "max_content_length", 50000)),
                substantial_length=int(reader.positive("scraping", "substantial_length", 200)),
                batch_size=int(reader.positive("scraping", "batch_size", 3)),
                batch_delay=reader.number("scraping", "batch_delay", 1.0),
                settle_delay=reader.number("scraping", "settle_delay", 2.0),
                max_attempts=int(reader.positive("scraping", "max_attempts", 2)),
                viewport=reader.viewport("scraping", "viewport", (1366, 768)),
                user_agents=reader.str_tuple("scraping", "user_agents", DEFAULT_USER_AGENTS),
                render_fallback_statuses=frozenset(
                    int(s) for s in reader.items(
                        "scraping", "render_fallback_statuses", [401, 403, 406, 429, 451],
                    )
                ),
                trafilatura_fallback=reader.flag("scraping", "trafilatura_fallback", True),
            ),
            retry=RetrySettings(
                max_attempts=int(reader.positive("retry", "max_attempts", 3)),
                base_delay=reader.number("retry", "base_delay", 2.0),
                max_delay=reader.number("retry", "max_delay", 30.0),
            ),
            enhancement=EnhancementSettings(
                mode=reader.choice("enhancement", "mode", ENHANCEMENT_MODES, "comprehensive"),
                min_length=int(reader.positive("enhancement", "min_length", 500)),
                source_excerpt=int(reader.positive("enhancement", "source_excerpt", 8000)),
                reference_excerpt=int(reader.positive("enhancement", "reference_excerpt", 1000)),
            ),
            publish=PublishSettings(
                mode=reader.choice("publish", "mode", PUBLISH_MODES, "create"),
                skip=reader.flag("publish", "skip", False),
                status=reader.text("publish", "status", "published"),
                author=reader.text("publish", "author", "AI Enhancement System"),
                category=reader.text("publish", "category", "Enhanced Articles"),
                tags=reader.str_tuple("publish", "tags", ("ai-enhanced", "automated")),
                require_headings=reader.flag("publish", "require_headings", True),
                max_length=int(reader.positive("publish", "max_length", 50000)),
            ),
            pipeline=PipelineSettings(
                max_references=int(reader.number("pipeline", "max_references", 2)),
                batch_count=int(reader.positive("pipeline", "batch_count", 1)),
                inter_run_delay=reader.number("pipeline", "inter_run_delay", 5.0),
                continue_on_error=reader.flag("pipeline", "continue_on_error", True),
                run_timeout=reader.positive("pipeline", "run_timeout", 600.0),
            ),
            logging=LoggingSettings(
                level=reader.choice(
                    "logging", "level",
                    ("DEBUG", "INFO", "WARNING", "ERROR"), "INFO", upper=True,
                ),
                file=reader.text("logging", "file", ""),
            ),
        )
        _check_providers(reader, settings)
        if reader.errors:
            raise ConfigurationError(
                f"{len(reader.errors)} configuration problem(s) found", reader.errors,
            )
        return settings

    def retry_policy(self) -> RetryPolicy:
        return self.retry.policy()


def _check_providers(reader: _Reader, settings: Settings) -> None:
    # Late imports: the registries import provider modules that import config
    from enhancer.llm import PROVIDERS
    from enhancer.search import SEARCH_PROVIDERS

    if settings.llm.provider not in PROVIDERS:
        reader.errors.append(
            f"llm.provider: unknown provider '{settings.llm.provider}' "
            f"(available: {', '.join(PROVIDERS)})"
        )
    if settings.search.provider not in SEARCH_PROVIDERS:
        reader.errors.append(
            f"search.provider: unknown provider '{settings.search.provider}' "
            f"(available: {', '.join(SEARCH_PROVIDERS)})"
        )


class _Reader:
    """Typed accessors over the raw mapping that record errors instead of raising."""

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self.errors: list[str] = []

    def _raw(self, section: str, key: str):
        value = self.config.get(section) or {}
        if not isinstance(value, dict):
            self.errors.append(f"{section}: must be a mapping")
            return None
        return value.get(key)

    def text(self, section: str, key: str, default: str = "", required: bool = False) -> str:
        value = self._raw(section, key)
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self.errors.append(f"{section}.{key}: required value is missing")
            return default
        return str(value).strip()

    def url(self, section: str, key: str, default: str | None = None) -> str:
        value = self.text(section, key, default or "", required=default is None)
        if value:
            parsed = urlparse(value)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                self.errors.append(f"{section}.{key}: not a valid http(s) URL: {value}")
        return value.rstrip("/")

    def number(self, section: str, key: str, default: float) -> float:
        value = self._raw(section, key)
        if value is None or value == "":
            return default
        try:
            number = float(value)
        except (TypeError, ValueError):
            self.errors.append(f"{section}.{key}: must be a number, got {value!r}")
            return default
        if number < 0:
            self.errors.append(f"{section}.{key}: must not be negative")
            return default
        return number

    def positive(self, section: str, key: str, default: float) -> float:
        number = self.number(section, key, default)
        if number <= 0:
            self.errors.append(f"{section}.{key}: must be greater than zero")
            return default
        return number

    def flag(self, section: str, key: str, default: bool) -> bool:
        value = self._raw(section, key)
        if value is None or value == "":
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    def items(self, section: str, key: str, default) -> list:
        value = self._raw(section, key)
        if value is None:
            return list(default)
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if not isinstance(value, list):
            self.errors.append(f"{section}.{key}: must be a list")
            return list(default)
        return value

    def str_tuple(self, section: str, key: str, default) -> tuple[str, ...]:
        return tuple(str(item).strip() for item in self.items(section, key, default) if str(item).strip())

    def choice(self, section: str, key: str, choices, default: str, upper: bool = False) -> str:
        value = self.text(section, key, default)
        value = value.upper() if upper else value.lower()
        if value not in choices:
            self.errors.append(
                f"{section}.{key}: must be one of {', '.join(choices)}, got {value!r}"
            )
            return default
        return value

    def viewport(self, section: str, key: str, default: tuple[int, int]) -> tuple[int, int]:
        value = self._raw(section, key)
        if value is None:
            return default
        try:
            if isinstance(value, dict):
                return int(value["width"]), int(value["height"])
            width, height = value
            return int(width), int(height)
        except (KeyError, TypeError, ValueError):
            self.errors.append(f"{section}.{key}: expected {{width, height}} or [width, height]")
            return default


def get_settings(path: str | Path = "config.yaml") -> Settings:
    """Load and validate configuration in one step."""
    return Settings.from_config(load_config(path))
