"""Unit tests for building GC tasks from settings."""

from __future__ import annotations

from preview_gc.config import (
    BranchConfig,
    CertificateConfig,
    CoreDevConfig,
    GCConfig,
    GCTaskConfig,
    Settings,
)
from preview_gc.gc.lifecycle import build_scheduler, build_tasks
from preview_gc.gc.tasks import OrphanLoadBalancerGC, StalePreviewGC
from tests.fakes import FakeRunner


def _tasks_by_name(settings: Settings) -> dict:
    return {task.name: task for task in build_tasks(settings, FakeRunner())}


def test_preview_teardown_runs_before_load_balancers():
    tasks = build_tasks(Settings(), FakeRunner())

    assert [task.name for task in tasks] == ["stale_preview", "orphan_loadbalancer"]
    assert isinstance(tasks[0], StalePreviewGC)
    assert isinstance(tasks[1], OrphanLoadBalancerGC)


def test_disabled_tasks_are_dropped():
    settings = Settings(gc=GCConfig(orphan_loadbalancer=GCTaskConfig(enabled=False)))
    assert [task.name for task in build_tasks(settings, FakeRunner())] == ["stale_preview"]

    settings = Settings(gc=GCConfig(stale_preview=GCTaskConfig(enabled=False)))
    assert [task.name for task in build_tasks(settings, FakeRunner())] == ["orphan_loadbalancer"]


def test_certificates_are_removed_on_coredev():
    settings = Settings(
        coredev=CoreDevConfig(kubeconfig="/kube/core-dev"),
        certificates=CertificateConfig(namespace="preview-certs"),
    )

    tasks = _tasks_by_name(settings)
    teardown = tasks["stale_preview"]._teardown
    lb_task = tasks["orphan_loadbalancer"]

    assert teardown._certificates is lb_task._coredev
    assert teardown._certificates.name == "coredev"
    assert teardown._certificates._kubeconfig == "/kube/core-dev"
    assert teardown._certificate_namespace == "preview-certs"


def test_branch_fetch_follows_settings():
    settings = Settings(branches=BranchConfig(fetch=False))

    assert _tasks_by_name(settings)["stale_preview"]._fetch_branches is False


def test_scheduler_carries_dry_run():
    scheduler = build_scheduler(Settings(gc=GCConfig(dry_run=True)), FakeRunner())

    assert [task.name for task in scheduler._tasks] == ["stale_preview", "orphan_loadbalancer"]
    assert scheduler._config.dry_run is True
