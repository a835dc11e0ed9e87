"""CLI entrypoint: python -m enhancer {run|test|fetch}."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path

from enhancer.config import ENHANCEMENT_MODES, PUBLISH_MODES, Settings, get_settings
from enhancer.errors import EnhancerError, user_message

_CONSOLE_HANDLER = "enhancer-console"
_FILE_HANDLER = "enhancer-file"


def setup_logging(settings: Settings) -> None:
    """Configure logging with console + optional rotating file output."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.logging.level, logging.INFO))

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    existing = {h.get_name() for h in root.handlers}

    if _CONSOLE_HANDLER not in existing:
        console = logging.StreamHandler()
        console.set_name(_CONSOLE_HANDLER)
        console.setFormatter(fmt)
        root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    if settings.logging.file and _FILE_HANDLER not in existing:
        log_file = Path(settings.logging.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_file), maxBytes=5 * 1024 * 1024, backupCount=3,
        )
        file_handler.set_name(_FILE_HANDLER)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("trafilatura").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


logger = logging.getLogger("enhancer")


def _print_failure(exc: BaseException) -> None:
    from enhancer.pipeline import RunFailedError

    if isinstance(exc, RunFailedError):
        print(f"Error: {exc.message}", file=sys.stderr)
        print(f"Hint: {exc.guidance}", file=sys.stderr)
    else:
        print(f"Error: {user_message(exc)}", file=sys.stderr)


def _print_summary(summary) -> None:
    print(json.dumps(summary.to_dict(), indent=2, default=str))


async def cmd_run(settings: Settings, args: argparse.Namespace) -> int:
    """Enhance the latest article (or a batch, or a given id)."""
    from enhancer.pipeline import EnhancementPipeline

    pipeline = EnhancementPipeline(settings)
    options = {
        "mode": args.mode,
        "publish_mode": args.publish_mode,
        "skip_publishing": True if args.skip_publishing else None,
    }

    if args.batch and args.batch > 1:
        batch = await pipeline.run_batch(
            args.batch,
            continue_on_error=False if args.stop_on_error else None,
            **options,
        )
        for summary in batch.runs:
            _print_summary(summary)
        print(
            f"\nBatch: {len(batch.succeeded)} succeeded, {len(batch.failed)} failed "
            f"({batch.success_rate}% success)"
        )
        return 0 if not batch.failed else 1

    summary = await pipeline.run(article_id=args.article_id, **options)
    _print_summary(summary)
    return 0


async def cmd_test(settings: Settings, args: argparse.Namespace) -> int:
    """Check connectivity of every component."""
    from enhancer.pipeline import EnhancementPipeline

    results = await EnhancementPipeline(settings).self_test()
    for name, passed in results.items():
        print(f"  {name:<10} {'PASS' if passed else 'FAIL'}")
    passed = sum(results.values())
    print(f"\n{passed}/{len(results)} checks passed")
    return 0 if all(results.values()) else 1


async def cmd_fetch(settings: Settings, args: argparse.Namespace) -> int:
    """Fetch an article without enhancing it (for testing the backend)."""
    from enhancer.backend.source import SourceGateway

    source = SourceGateway(settings.backend, settings.retry_policy())
    if args.article_id is not None:
        article = await source.fetch_by_id(args.article_id)
    else:
        article = await source.fetch_latest()
    if article is None:
        print("No articles found.")
        return 0
    print(f"#{article.id}: {article.title} ({len(article.content)} chars)")
    return 0


COMMANDS = {
    "run": cmd_run,
    "test": cmd_test,
    "fetch": cmd_fetch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m enhancer",
        description="Enhance backend articles with web references and an LLM rewrite",
    )
    parser.add_argument("command", choices=list(COMMANDS))
    parser.add_argument(
        "--config", default=None,
        help="Config file path (default: config.yaml or CONFIG_PATH env)",
    )
    parser.add_argument("--mode", choices=ENHANCEMENT_MODES, default=None,
                        help="Enhancement mode (default from config)")
    parser.add_argument("--publish-mode", choices=PUBLISH_MODES, default=None,
                        help="create a new article or update the source one")
    parser.add_argument("--skip-publishing", action="store_true",
                        help="Enhance but do not publish")
    parser.add_argument("--batch", type=int, default=None,
                        help="Number of recent articles to process sequentially")
    parser.add_argument("--article-id", default=None,
                        help="Enhance a specific article instead of the latest")
    parser.add_argument("--stop-on-error", action="store_true",
                        help="Abort a batch on the first failed article")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config_path = args.config or os.environ.get("CONFIG_PATH", "config.yaml")

    try:
        settings = get_settings(config_path)
    except EnhancerError as e:
        print(f"Error: {user_message(e)}", file=sys.stderr)
        return 1

    setup_logging(settings)
    handler = COMMANDS[args.command]
    try:
        return asyncio.run(handler(settings, args))
    except EnhancerError as e:
        _print_failure(e)
        return 1
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
