from __future__ import annotations

import asyncio
import os

import click


def _load_settings(config_file: str | None, dry_run: bool | None):
    from preview_gc.config import get_settings

    if config_file:
        os.environ["PREVIEW_GC_CONFIG_FILE"] = config_file
        get_settings.cache_clear()

    settings = get_settings()
    if dry_run is not None:
        settings.gc.dry_run = dry_run
    return settings


def _setup(config_file: str | None, dry_run: bool | None, log_level: str | None, json_logs: bool):
    from preview_gc.log import setup_logging

    settings = _load_settings(config_file, dry_run)
    setup_logging(log_level or settings.logging.level, json_logs or settings.logging.json_format)
    return settings


async def _run_once(settings) -> int:
    import structlog

    from preview_gc.access import configure_access
    from preview_gc.errors import SetupError
    from preview_gc.gc.lifecycle import build_scheduler, exit_code
    from preview_gc.shell import CommandRunner

    log = structlog.get_logger()
    runner = CommandRunner()

    try:
        await configure_access(settings, runner)
    except SetupError as e:
        log.error("preview_gc.setup_failed", error=str(e))
        return 1

    scheduler = build_scheduler(settings, runner)
    results = await scheduler.run_once()

    for result in results:
        log.info(
            "preview_gc.result",
            task=result.task_name,
            success=result.success,
            cleaned=result.cleaned_count,
            skipped=result.skipped_count,
            errors=result.errors,
        )
    return exit_code(results)


_common_options = [
    click.option("--config", "config_file", default=None, help="Path to config.yaml."),
    click.option(
        "--dry-run/--no-dry-run",
        default=None,
        help="Only log what would be deleted (default: from config).",
    ),
    click.option("--log-level", default=None, help="Log level (default: from config)."),
    click.option("--json-logs", is_flag=True, default=False, help="Emit JSON log lines."),
]


def common_options(func):
    for option in reversed(_common_options):
        func = option(func)
    return func


@click.group()
def main() -> None:
    """preview-gc - Garbage collector for preview environments."""


@main.command()
@common_options
def run(config_file: str | None, dry_run: bool | None, log_level: str | None, json_logs: bool) -> None:
    """Run one collection cycle and exit with its status."""
    settings = _setup(config_file, dry_run, log_level, json_logs)
    raise SystemExit(asyncio.run(_run_once(settings)))
