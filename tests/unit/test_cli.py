"""Unit tests for the preview-gc command line."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from preview_gc.cli import main
from preview_gc.errors import SetupError
from preview_gc.gc.base import GCResult


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PREVIEW_GC_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    with patch("preview_gc.log.setup_logging"):
        yield tmp_path


def _scheduler(*results: GCResult) -> MagicMock:
    scheduler = MagicMock()
    scheduler.run_once = AsyncMock(return_value=list(results))
    return scheduler


def test_run_success():
    scheduler = _scheduler(GCResult(task_name="stale_preview", cleaned_count=2))

    with (
        patch("preview_gc.access.configure_access", AsyncMock()),
        patch("preview_gc.gc.lifecycle.build_scheduler", return_value=scheduler) as build,
    ):
        result = CliRunner().invoke(main, ["run"])

    assert result.exit_code == 0
    settings = build.call_args.args[0]
    assert settings.gc.dry_run is False


def test_run_dry_run_flag():
    scheduler = _scheduler(GCResult(task_name="stale_preview", skipped_count=3))

    with (
        patch("preview_gc.access.configure_access", AsyncMock()),
        patch("preview_gc.gc.lifecycle.build_scheduler", return_value=scheduler) as build,
    ):
        result = CliRunner().invoke(main, ["run", "--dry-run"])

    assert result.exit_code == 0
    assert build.call_args.args[0].gc.dry_run is True


def test_run_reports_errors_in_exit_code():
    failed = GCResult(task_name="orphan_loadbalancer")
    failed.add_error("load balancer x: forbidden")
    scheduler = _scheduler(GCResult(task_name="stale_preview"), failed)

    with (
        patch("preview_gc.access.configure_access", AsyncMock()),
        patch("preview_gc.gc.lifecycle.build_scheduler", return_value=scheduler),
    ):
        result = CliRunner().invoke(main, ["run"])

    assert result.exit_code == 1


def test_setup_failure_skips_collection():
    with (
        patch("preview_gc.access.configure_access", AsyncMock(side_effect=SetupError("no key"))),
        patch("preview_gc.gc.lifecycle.build_scheduler") as build,
    ):
        result = CliRunner().invoke(main, ["run"])

    assert result.exit_code == 1
    build.assert_not_called()


def test_config_option(isolated):
    config_file = isolated / "gc.yaml"
    config_file.write_text("gc:\n  dry_run: true\n")
    scheduler = _scheduler()

    with (
        patch("preview_gc.access.configure_access", AsyncMock()),
        patch("preview_gc.gc.lifecycle.build_scheduler", return_value=scheduler) as build,
    ):
        result = CliRunner().invoke(main, ["run", "--config", str(config_file)])

    assert result.exit_code == 0
    assert build.call_args.args[0].gc.dry_run is True
