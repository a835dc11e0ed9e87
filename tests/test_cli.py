"""Tests for the command-line entrypoint."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from enhancer.__main__ import build_parser, main
from enhancer.errors import ValidationError
from enhancer.models import BatchSummary, PublishResult, RunSummary, SourceArticle
from enhancer.pipeline import RunFailedError


def _pipeline_class(**methods) -> MagicMock:
    instance = MagicMock()
    for name, value in methods.items():
        setattr(instance, name, value)
    return MagicMock(return_value=instance)


def test_parser_defaults():
    args = build_parser().parse_args(["run"])
    assert args.command == "run"
    assert args.mode is None
    assert args.batch is None
    assert args.skip_publishing is False


def test_parser_rejects_unknown_mode():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run", "--mode", "poetry"])


def test_missing_config_exits_nonzero(tmp_path, capsys):
    code = main(["run", "--config", str(tmp_path / "nope.yaml")])

    assert code == 1
    assert "Config file not found" in capsys.readouterr().err


def test_run_prints_summary(config_path, capsys):
    summary = RunSummary(status="completed", article_id=42, published=PublishResult(id=101, action="create"))
    cls = _pipeline_class(run=AsyncMock(return_value=summary))

    with patch("enhancer.pipeline.EnhancementPipeline", cls):
        code = main(["run", "--config", str(config_path), "--mode", "seo", "--skip-publishing"])

    assert code == 0
    cls.return_value.run.assert_awaited_once_with(
        article_id=None, mode="seo", publish_mode=None, skip_publishing=True,
    )
    out = capsys.readouterr().out
    assert '"status": "completed"' in out
    assert '"id": 101' in out


def test_publish_rejection_exits_nonzero(config_path, capsys):
    cause = ValidationError(
        "Backend API validation failed: {'title': ['taken']}",
        field="payload", details={"title": ["taken"]},
    )
    summary = RunSummary(status="failed", failed_step="publish")
    cls = _pipeline_class(run=AsyncMock(side_effect=RunFailedError(summary, "publish", cause)))

    with patch("enhancer.pipeline.EnhancementPipeline", cls):
        code = main(["run", "--config", str(config_path)])

    assert code == 1
    err = capsys.readouterr().err
    assert "Error: Invalid data: Backend API validation failed" in err
    assert "Hint: Publishing failed" in err


def test_batch_with_failures_exits_nonzero(config_path, capsys):
    batch = BatchSummary(
        runs=[RunSummary(status="completed"), RunSummary(status="failed", failed_step="scrape")],
        requested=2,
    )
    cls = _pipeline_class(run_batch=AsyncMock(return_value=batch))

    with patch("enhancer.pipeline.EnhancementPipeline", cls):
        code = main(["run", "--config", str(config_path), "--batch", "2", "--stop-on-error"])

    assert code == 1
    assert cls.return_value.run_batch.call_args.kwargs["continue_on_error"] is False
    assert "Batch: 1 succeeded, 1 failed (50% success)" in capsys.readouterr().out


def test_self_test_command(config_path, capsys):
    results = {"backend": True, "search": True, "scraping": True, "llm": False, "publisher": True}
    cls = _pipeline_class(self_test=AsyncMock(return_value=results))

    with patch("enhancer.pipeline.EnhancementPipeline", cls):
        code = main(["test", "--config", str(config_path)])

    assert code == 1
    out = capsys.readouterr().out
    assert "llm" in out and "FAIL" in out
    assert "4/5 checks passed" in out


def test_fetch_command(config_path, capsys):
    article = SourceArticle(id=7, title="Hello", content="x" * 120)

    with patch("enhancer.backend.source.SourceGateway.fetch_latest", AsyncMock(return_value=article)):
        code = main(["fetch", "--config", str(config_path)])

    assert code == 0
    assert "#7: Hello (120 chars)" in capsys.readouterr().out
