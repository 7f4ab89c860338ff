"""OrphanLoadBalancerGC - Clean up load balancers of vanished previews.

Harvester previews get a load balancer on CoreDev: a deployment and a
service named `lb-<preview>` in the load balancer namespace, labelled with
the preview name. When the Harvester namespace `preview-<preview>` goes
away, the load balancer is left behind. This task deletes every load
balancer whose preview namespace no longer exists.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from preview_gc.environments import HarvesterPreviewEnvironment
from preview_gc.gc.base import GCResult, GCTask

if TYPE_CHECKING:
    from preview_gc.config import LoadBalancerConfig
    from preview_gc.kube import KubeCluster
    from preview_gc.reporting import RunContext

logger = structlog.get_logger()


class OrphanLoadBalancerGC(GCTask):
    def __init__(
        self,
        coredev: "KubeCluster",
        harvester: "KubeCluster",
        config: "LoadBalancerConfig",
    ) -> None:
        self._coredev = coredev
        self._harvester = harvester
        self._config = config
        self._log = logger.bind(gc_task="orphan_loadbalancer")

    @property
    def name(self) -> str:
        return "orphan_loadbalancer"

    async def find_orphans(self, ctx: "RunContext") -> list[str]:
        """Preview names of load balancers without a live preview namespace."""
        ctx.phase("Fetching unused load balancers")

        async with self._coredev.connect() as kube:
            lb_names = await kube.list_deployment_label_values(
                self._config.namespace,
                self._config.label,
            )
        async with self._harvester.connect() as kube:
            live = set(
                await kube.list_namespaces(prefix=HarvesterPreviewEnvironment.namespace_prefix)
            )

        orphans = [
            lb
            for lb in dict.fromkeys(lb_names)
            if f"{HarvesterPreviewEnvironment.namespace_prefix}{lb}" not in live
        ]

        self._log.info(
            "gc.orphan_loadbalancer.discovery.complete",
            run_id=ctx.run_id,
            load_balancers=len(lb_names),
            orphans=orphans,
        )
        return orphans

    async def run(self, ctx: "RunContext") -> GCResult:
        result = GCResult(task_name=self.name)
        orphans = await self.find_orphans(ctx)

        ctx.phase("Deleting unused load balancers")
        if ctx.dry_run:
            for lb in orphans:
                self._log.info("gc.orphan_loadbalancer.would_delete", run_id=ctx.run_id, lb_name=lb)
            result.skipped_count = len(orphans)
            return result

        async with self._coredev.connect() as kube:
            for lb in orphans:
                resource_name = f"{self._config.name_prefix}{lb}"
                try:
                    self._log.info(
                        "gc.orphan_loadbalancer.deleting",
                        run_id=ctx.run_id,
                        lb_name=lb,
                    )
                    await kube.delete_deployment(self._config.namespace, resource_name)
                    await kube.delete_service(self._config.namespace, resource_name)
                    result.cleaned_count += 1
                except Exception as e:
                    self._log.exception(
                        "gc.orphan_loadbalancer.item_error",
                        run_id=ctx.run_id,
                        lb_name=lb,
                        error=str(e),
                    )
                    result.add_error(f"load balancer {lb}: {e}")

        return result
