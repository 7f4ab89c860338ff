"""Unit tests for KubeClient.

Tests the client logic with mocked kubernetes-asyncio API.
"""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from kubernetes_asyncio.client import ApiException

from preview_gc.kube import KubeClient, KubeCluster, PodStatus


def _namespace(name: str, phase: str = "Active") -> MagicMock:
    ns = MagicMock()
    ns.metadata.name = name
    ns.status.phase = phase
    return ns


def _pod(phase: str, ready: list[bool] | None) -> MagicMock:
    pod = MagicMock()
    pod.status.phase = phase
    if ready is None:
        pod.status.container_statuses = None
    else:
        pod.status.container_statuses = [MagicMock(ready=r) for r in ready]
    return pod


@pytest.fixture
def core_v1():
    with patch("preview_gc.kube.client.CoreV1Api") as cls:
        api = MagicMock()
        cls.return_value = api
        yield api


@pytest.fixture
def apps_v1():
    with patch("preview_gc.kube.client.AppsV1Api") as cls:
        api = MagicMock()
        cls.return_value = api
        yield api


@pytest.fixture
def custom():
    with patch("preview_gc.kube.client.CustomObjectsApi") as cls:
        api = MagicMock()
        cls.return_value = api
        yield api


@pytest.fixture
def kube():
    return KubeClient(MagicMock(), cluster="test")


class TestNamespaces:
    @pytest.mark.asyncio
    async def test_list_filters_by_prefix(self, kube, core_v1):
        core_v1.list_namespace = AsyncMock(
            return_value=MagicMock(items=[_namespace("preview-a"), _namespace("default")])
        )

        names = await kube.list_namespaces(prefix="preview-")

        assert names == ["preview-a"]
        core_v1.list_namespace.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_list_passes_label_selector(self, kube, core_v1):
        core_v1.list_namespace = AsyncMock(return_value=MagicMock(items=[_namespace("staging-a")]))

        names = await kube.list_namespaces(prefix="staging-", label_selector="preview=true")

        assert names == ["staging-a"]
        core_v1.list_namespace.assert_awaited_once_with(label_selector="preview=true")

    @pytest.mark.asyncio
    async def test_phase(self, kube, core_v1):
        core_v1.read_namespace = AsyncMock(return_value=_namespace("staging-a", "Terminating"))

        assert await kube.namespace_phase("staging-a") == "Terminating"

    @pytest.mark.asyncio
    async def test_phase_of_missing_namespace(self, kube, core_v1):
        core_v1.read_namespace = AsyncMock(side_effect=ApiException(status=404))

        assert await kube.namespace_phase("staging-a") is None

    @pytest.mark.asyncio
    async def test_delete_not_found_is_success(self, kube, core_v1):
        core_v1.delete_namespace = AsyncMock(side_effect=ApiException(status=404))

        await kube.delete_namespace("staging-a")

    @pytest.mark.asyncio
    async def test_delete_other_errors_raise(self, kube, core_v1):
        core_v1.delete_namespace = AsyncMock(side_effect=ApiException(status=403))

        with pytest.raises(ApiException):
            await kube.delete_namespace("staging-a")


class TestPods:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("phase", "ready", "expected"),
        [
            ("Running", [True, True], PodStatus("Running", True)),
            ("Running", [True, False], PodStatus("Running", False)),
            ("Running", [], PodStatus("Running", False)),
            ("Running", None, PodStatus("Running", False)),
            ("Pending", [True], PodStatus("Pending", True)),
        ],
    )
    async def test_pod_status(self, kube, core_v1, phase, ready, expected):
        core_v1.read_namespaced_pod = AsyncMock(return_value=_pod(phase, ready))

        status = await kube.pod_status("staging-a", "mysql-0")

        assert status == expected
        assert status.running_and_ready == (phase == "Running" and expected.ready)

    @pytest.mark.asyncio
    async def test_missing_pod(self, kube, core_v1):
        core_v1.read_namespaced_pod = AsyncMock(side_effect=ApiException(status=404))

        status = await kube.pod_status("staging-a", "mysql-0")

        assert status.phase is None
        assert not status.running_and_ready

    @pytest.mark.asyncio
    async def test_delete_pods_force(self, kube, core_v1):
        core_v1.delete_collection_namespaced_pod = AsyncMock()

        await kube.delete_pods("staging-a", label_selector="component=workspace")

        core_v1.delete_collection_namespaced_pod.assert_awaited_once_with(
            namespace="staging-a",
            label_selector="component=workspace",
            grace_period_seconds=0,
        )


class TestSecrets:
    @pytest.mark.asyncio
    async def test_decodes_value(self, kube, core_v1):
        encoded = base64.b64encode(b"hunter2\n").decode()
        core_v1.read_namespaced_secret = AsyncMock(
            return_value=MagicMock(data={"mysql-root-password": encoded})
        )

        value = await kube.read_secret_value("staging-a", "db-password", "mysql-root-password")

        assert value == "hunter2"

    @pytest.mark.asyncio
    async def test_missing_key(self, kube, core_v1):
        core_v1.read_namespaced_secret = AsyncMock(return_value=MagicMock(data={}))

        with pytest.raises(KeyError):
            await kube.read_secret_value("staging-a", "db-password", "mysql-root-password")


class TestWorkloads:
    @pytest.mark.asyncio
    async def test_deployment_label_values(self, kube, apps_v1):
        labelled = MagicMock()
        labelled.metadata.labels = {"gitpod.io/lbName": "x"}
        unlabelled = MagicMock()
        unlabelled.metadata.labels = None
        apps_v1.list_namespaced_deployment = AsyncMock(
            return_value=MagicMock(items=[labelled, unlabelled])
        )

        values = await kube.list_deployment_label_values("loadbalancers", "gitpod.io/lbName")

        assert values == ["x"]
        apps_v1.list_namespaced_deployment.assert_awaited_once_with(
            namespace="loadbalancers",
            label_selector="gitpod.io/lbName",
        )

    @pytest.mark.asyncio
    async def test_delete_deployment_not_found(self, kube, apps_v1):
        apps_v1.delete_namespaced_deployment = AsyncMock(side_effect=ApiException(status=404))

        await kube.delete_deployment("loadbalancers", "lb-x")

    @pytest.mark.asyncio
    async def test_delete_service_error(self, kube, core_v1):
        core_v1.delete_namespaced_service = AsyncMock(side_effect=ApiException(status=500))

        with pytest.raises(ApiException):
            await kube.delete_service("loadbalancers", "lb-x")


class TestCustomObjects:
    @pytest.mark.asyncio
    async def test_delete_certificate(self, kube, custom):
        custom.delete_namespaced_custom_object = AsyncMock()

        await kube.delete_certificate("certs", "feature-a")

        custom.delete_namespaced_custom_object.assert_awaited_once_with(
            group="cert-manager.io",
            version="v1",
            namespace="certs",
            plural="certificates",
            name="feature-a",
        )

    @pytest.mark.asyncio
    async def test_delete_virtual_machine_not_found(self, kube, custom):
        custom.delete_namespaced_custom_object = AsyncMock(side_effect=ApiException(status=404))

        await kube.delete_virtual_machine("preview-a", "a")

        kwargs = custom.delete_namespaced_custom_object.await_args.kwargs
        assert kwargs["group"] == "kubevirt.io"
        assert kwargs["plural"] == "virtualmachines"


class TestKubeCluster:
    @pytest.mark.asyncio
    async def test_connect_uses_kubeconfig_and_closes(self):
        api_client = MagicMock()
        api_client.close = AsyncMock()

        with patch(
            "preview_gc.kube.config.new_client_from_config",
            AsyncMock(return_value=api_client),
        ) as new_client:
            async with KubeCluster("coredev", "/tmp/core-dev").connect() as kube:
                assert kube.cluster == "coredev"

        new_client.assert_awaited_once_with(config_file="/tmp/core-dev")
        api_client.close.assert_awaited_once()
