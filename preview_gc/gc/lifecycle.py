"""Builds the GC scheduler and its tasks from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from preview_gc.activity import DatabaseActivityProbe
from preview_gc.branches import BranchInventory
from preview_gc.dns import CloudDNS
from preview_gc.environments import (
    CoreDevBackend,
    EnvironmentInventory,
    HarvesterBackend,
)
from preview_gc.gc.base import GCResult, GCTask
from preview_gc.gc.classifier import StalenessClassifier
from preview_gc.gc.scheduler import GCScheduler
from preview_gc.gc.tasks import OrphanLoadBalancerGC, StalePreviewGC
from preview_gc.gc.teardown import TeardownOrchestrator
from preview_gc.kube import KubeCluster
from preview_gc.shell import CommandRunner

if TYPE_CHECKING:
    from preview_gc.config import Settings

logger = structlog.get_logger()


def build_tasks(settings: "Settings", runner: CommandRunner) -> list[GCTask]:
    """Create enabled GC tasks in execution order."""
    coredev_cluster = KubeCluster("coredev", settings.coredev.kubeconfig)
    harvester_cluster = KubeCluster("harvester", settings.harvester.kubeconfig)
    dns = CloudDNS(runner)

    tasks: list[GCTask] = []

    if settings.gc.stale_preview.enabled:
        coredev = CoreDevBackend(
            cluster=coredev_cluster,
            dns=dns,
            probe=DatabaseActivityProbe(settings.activity),
            runner=runner,
            config=settings.coredev,
            activity=settings.activity,
        )
        harvester = HarvesterBackend(
            cluster=harvester_cluster,
            dns=dns,
            config=settings.harvester,
        )
        branches = BranchInventory(runner, settings.branches)
        tasks.append(
            StalePreviewGC(
                environments=EnvironmentInventory(coredev, harvester),
                branches=branches,
                classifier=StalenessClassifier(
                    branches,
                    window_days=settings.branches.stale_after_days,
                    max_concurrent_checks=settings.branches.max_concurrent_checks,
                    max_concurrent_probes=settings.activity.max_concurrent_probes,
                ),
                teardown=TeardownOrchestrator(
                    certificates=coredev_cluster,
                    certificate_namespace=settings.certificates.namespace,
                ),
                fetch_branches=settings.branches.fetch,
            )
        )

    if settings.gc.orphan_loadbalancer.enabled:
        tasks.append(
            OrphanLoadBalancerGC(
                coredev=coredev_cluster,
                harvester=harvester_cluster,
                config=settings.loadbalancers,
            )
        )

    return tasks


def build_scheduler(settings: "Settings", runner: CommandRunner | None = None) -> GCScheduler:
    runner = runner or CommandRunner()
    tasks = build_tasks(settings, runner)
    logger.info(
        "gc.scheduler.configured",
        tasks=[task.name for task in tasks],
        dry_run=settings.gc.dry_run,
    )
    return GCScheduler(tasks=tasks, config=settings.gc)


def exit_code(results: list[GCResult]) -> int:
    """0 when every task succeeded, 1 otherwise."""
    return 0 if all(result.success for result in results) else 1
