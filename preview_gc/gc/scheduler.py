"""Runs one collection cycle over the configured GC tasks.

preview-gc is started by cron; a cycle is the whole lifetime of the process.
Tasks share one RunContext and run in list order, so the load balancer
reclaimer only starts once preview teardown has finished.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from preview_gc.gc.base import GCResult, GCTask
from preview_gc.reporting import RunContext

if TYPE_CHECKING:
    from preview_gc.config import GCConfig

logger = structlog.get_logger()


class GCScheduler:
    def __init__(self, tasks: list[GCTask], config: "GCConfig") -> None:
        self._tasks = tasks
        self._config = config
        self._log = logger.bind(service="gc_scheduler")

    async def run_once(self) -> list[GCResult]:
        """Run every task once, one after another.

        A task that raises yields a failed GCResult and the next task still
        runs.
        """
        ctx = RunContext(dry_run=self._config.dry_run)
        self._log.info(
            "gc.cycle.start",
            run_id=ctx.run_id,
            dry_run=ctx.dry_run,
            tasks=[task.name for task in self._tasks],
        )

        results = [await self._run_task(task, ctx) for task in self._tasks]

        self._log.info(
            "gc.cycle.complete",
            run_id=ctx.run_id,
            total_cleaned=sum(r.cleaned_count for r in results),
            total_skipped=sum(r.skipped_count for r in results),
            total_errors=sum(len(r.errors) for r in results),
            slices_done=len(ctx.done_slices),
            slices_failed=sorted(ctx.failed_slices),
        )
        return results

    async def _run_task(self, task: GCTask, ctx: RunContext) -> GCResult:
        log = self._log.bind(task=task.name, run_id=ctx.run_id)
        log.info("gc.task.start")

        try:
            result = await task.run(ctx)
        except Exception as e:
            log.exception("gc.task.failed", error=str(e))
            result = GCResult(task_name=task.name)
            result.add_error(f"Task failed: {e}")
            return result

        result.task_name = task.name
        log.info(
            "gc.task.complete",
            cleaned=result.cleaned_count,
            skipped=result.skipped_count,
            errors=len(result.errors),
        )
        for error in result.errors:
            log.warning("gc.task.item_error", error=error)
        return result
