"""Unit tests for OrphanLoadBalancerGC."""

from __future__ import annotations

import pytest

from preview_gc.config import LoadBalancerConfig
from preview_gc.gc.tasks import OrphanLoadBalancerGC
from preview_gc.reporting import RunContext
from tests.fakes import FakeKubeClient, FakeKubeCluster


def _task(coredev: FakeKubeClient, harvester: FakeKubeClient) -> OrphanLoadBalancerGC:
    return OrphanLoadBalancerGC(
        FakeKubeCluster("coredev", coredev),
        FakeKubeCluster("harvester", harvester),
        LoadBalancerConfig(),
    )


@pytest.fixture
def coredev():
    return FakeKubeClient(deployment_labels={"loadbalancers": ["x", "y"]})


@pytest.fixture
def harvester():
    return FakeKubeClient(namespaces=["preview-y", "default"])


@pytest.mark.asyncio
async def test_find_orphans(coredev, harvester):
    orphans = await _task(coredev, harvester).find_orphans(RunContext())

    assert orphans == ["x"]
    assert ("list_deployment_label_values", "loadbalancers", "gitpod.io/lbName") in coredev.calls


@pytest.mark.asyncio
async def test_deletes_orphan_deployment_and_service(coredev, harvester):
    result = await _task(coredev, harvester).run(RunContext())

    assert result.success
    assert result.cleaned_count == 1
    assert coredev.mutations() == [
        ("delete_deployment", "loadbalancers", "lb-x"),
        ("delete_service", "loadbalancers", "lb-x"),
    ]
    assert harvester.mutations() == []


@pytest.mark.asyncio
async def test_dry_run_deletes_nothing(coredev, harvester):
    result = await _task(coredev, harvester).run(RunContext(dry_run=True))

    assert coredev.mutations() == []
    assert result.skipped_count == 1
    assert result.cleaned_count == 0


@pytest.mark.asyncio
async def test_duplicate_labels_are_handled_once(harvester):
    coredev = FakeKubeClient(deployment_labels={"loadbalancers": ["x", "x"]})

    result = await _task(coredev, harvester).run(RunContext())

    assert result.cleaned_count == 1
    assert len(coredev.mutations()) == 2


@pytest.mark.asyncio
async def test_failure_is_isolated_per_load_balancer(harvester):
    coredev = FakeKubeClient(
        deployment_labels={"loadbalancers": ["x", "z"]},
        item_errors={("delete_deployment", "lb-x"): RuntimeError("forbidden")},
    )

    result = await _task(coredev, harvester).run(RunContext())

    assert result.cleaned_count == 1
    assert len(result.errors) == 1
    assert "load balancer x" in result.errors[0]
    assert ("delete_service", "loadbalancers", "lb-z") in coredev.mutations()
    assert ("delete_service", "loadbalancers", "lb-x") not in coredev.mutations()


@pytest.mark.asyncio
async def test_nothing_orphaned():
    coredev = FakeKubeClient(deployment_labels={"loadbalancers": ["y"]})
    harvester = FakeKubeClient(namespaces=["preview-y"])

    result = await _task(coredev, harvester).run(RunContext())

    assert result.success
    assert result.cleaned_count == 0
    assert coredev.mutations() == []


@pytest.mark.asyncio
async def test_listing_failure_propagates(harvester):
    coredev = FakeKubeClient(errors={"list_deployment_label_values": RuntimeError("timeout")})

    with pytest.raises(RuntimeError):
        await _task(coredev, harvester).run(RunContext())
