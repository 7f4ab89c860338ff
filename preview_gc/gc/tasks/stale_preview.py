"""StalePreviewGC - Delete preview environments that are no longer needed.

Pipeline: environment inventory + branch inventory -> classification ->
teardown. Inventory and classification errors abort the task; teardown
errors are contained per environment and reported in the result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from preview_gc.gc.base import GCResult, GCTask

if TYPE_CHECKING:
    from preview_gc.branches import BranchInventory
    from preview_gc.environments import EnvironmentInventory
    from preview_gc.gc.classifier import StalenessClassifier
    from preview_gc.gc.teardown import TeardownOrchestrator
    from preview_gc.reporting import RunContext

logger = structlog.get_logger()


class StalePreviewGC(GCTask):
    def __init__(
        self,
        environments: "EnvironmentInventory",
        branches: "BranchInventory",
        classifier: "StalenessClassifier",
        teardown: "TeardownOrchestrator",
        *,
        fetch_branches: bool = True,
    ) -> None:
        self._environments = environments
        self._branches = branches
        self._classifier = classifier
        self._teardown = teardown
        self._fetch_branches = fetch_branches
        self._log = logger.bind(gc_task="stale_preview")

    @property
    def name(self) -> str:
        return "stale_preview"

    async def run(self, ctx: "RunContext") -> GCResult:
        result = GCResult(task_name=self.name)

        ctx.phase("Fetching preview environments")
        environments = await self._environments.list_all(ctx)

        ctx.phase("Fetching branches")
        if self._fetch_branches:
            await self._branches.fetch()
        branches = [branch.name for branch in await self._branches.list_branches()]
        ctx.log.info("branches.found", count=len(branches))

        classification = await self._classifier.classify(ctx, environments, branches)
        candidates = classification.candidates

        if not candidates:
            self._log.info("gc.stale_preview.nothing_to_do", run_id=ctx.run_id)
            return result

        self._log.info(
            "gc.stale_preview.candidates",
            run_id=ctx.run_id,
            count=len(candidates),
            namespaces=[env.namespace for env in candidates],
        )

        report = await self._teardown.run(ctx, candidates)

        result.cleaned_count = len(report.deleted)
        result.skipped_count = len(report.would_delete)
        for namespace, error in report.failed.items():
            result.add_error(f"preview {namespace}: {error}")

        return result
