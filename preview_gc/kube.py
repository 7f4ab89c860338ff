"""Kubernetes access using kubernetes-asyncio.

Two clusters are talked to in the same process (CoreDev and Harvester), so
clients are built from an explicit kubeconfig per cluster instead of the
process-wide default configuration.

Every delete treats 404 as success: the object is already gone.
"""

from __future__ import annotations

import base64
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import structlog
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client import ApiClient, ApiException

logger = structlog.get_logger()

CERT_MANAGER_GROUP = "cert-manager.io"
CERT_MANAGER_VERSION = "v1"
KUBEVIRT_GROUP = "kubevirt.io"
KUBEVIRT_VERSION = "v1"


@dataclass(frozen=True)
class PodStatus:
    """Phase and readiness of a single pod."""

    phase: str | None
    ready: bool

    @property
    def running_and_ready(self) -> bool:
        return self.phase == "Running" and self.ready


class KubeCluster:
    """A cluster reachable through one kubeconfig.

    Each `connect()` opens an independent API client, so concurrent tasks
    never share a client handle.
    """

    def __init__(self, name: str, kubeconfig: str | None = None) -> None:
        self.name = name
        self._kubeconfig = kubeconfig
        self._log = logger.bind(cluster=name)

    async def _new_api_client(self) -> ApiClient:
        if self._kubeconfig:
            return await config.new_client_from_config(config_file=self._kubeconfig)

        configuration = client.Configuration()
        config.load_incluster_config(client_configuration=configuration)
        return ApiClient(configuration=configuration)

    @asynccontextmanager
    async def connect(self) -> AsyncIterator["KubeClient"]:
        api_client = await self._new_api_client()
        try:
            yield KubeClient(api_client, cluster=self.name)
        finally:
            await api_client.close()


class KubeClient:
    """Query and mutation surface used by the collector."""

    def __init__(self, api_client: ApiClient, cluster: str = "") -> None:
        self._api = api_client
        self.cluster = cluster
        self._log = logger.bind(cluster=cluster)

    # Namespaces

    async def list_namespaces(
        self,
        *,
        prefix: str = "",
        label_selector: str | None = None,
    ) -> list[str]:
        """List namespace names, optionally filtered by label and name prefix."""
        v1 = client.CoreV1Api(self._api)

        kwargs = {}
        if label_selector:
            kwargs["label_selector"] = label_selector

        ns_list = await v1.list_namespace(**kwargs)
        names = [ns.metadata.name for ns in ns_list.items]
        names = [name for name in names if name.startswith(prefix)]

        self._log.debug(
            "k8s.list_namespaces",
            prefix=prefix,
            label_selector=label_selector,
            count=len(names),
        )
        return names

    async def namespace_phase(self, name: str) -> str | None:
        """Return the namespace phase, or None if it does not exist."""
        v1 = client.CoreV1Api(self._api)
        try:
            ns = await v1.read_namespace(name=name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return ns.status.phase if ns.status else None

    async def delete_namespace(self, name: str) -> None:
        v1 = client.CoreV1Api(self._api)

        self._log.info("k8s.delete_namespace", namespace=name)

        try:
            await v1.delete_namespace(name=name)
        except ApiException as e:
            if e.status == 404:
                self._log.warning("k8s.delete_namespace.not_found", namespace=name)
            else:
                raise

    # Pods and secrets

    async def pod_status(self, namespace: str, name: str) -> PodStatus:
        """Return pod phase and whether every container reports ready.

        A missing pod is reported with phase None.
        """
        v1 = client.CoreV1Api(self._api)
        try:
            pod = await v1.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return PodStatus(phase=None, ready=False)
            raise

        container_statuses = pod.status.container_statuses or []
        ready = bool(container_statuses) and all(cs.ready for cs in container_statuses)
        return PodStatus(phase=pod.status.phase, ready=ready)

    async def delete_pods(self, namespace: str, *, label_selector: str) -> None:
        """Force delete all pods matching a selector."""
        v1 = client.CoreV1Api(self._api)

        self._log.info(
            "k8s.delete_pods",
            namespace=namespace,
            label_selector=label_selector,
        )

        try:
            await v1.delete_collection_namespaced_pod(
                namespace=namespace,
                label_selector=label_selector,
                grace_period_seconds=0,
            )
        except ApiException as e:
            if e.status == 404:
                self._log.warning("k8s.delete_pods.not_found", namespace=namespace)
            else:
                raise

    async def read_secret_value(self, namespace: str, name: str, key: str) -> str:
        """Read and base64-decode a single secret key."""
        v1 = client.CoreV1Api(self._api)
        secret = await v1.read_namespaced_secret(name=name, namespace=namespace)
        data = secret.data or {}
        if key not in data:
            raise KeyError(f"secret {namespace}/{name} has no key {key}")
        return base64.b64decode(data[key]).decode("utf-8").strip()

    # Workloads

    async def list_deployment_label_values(self, namespace: str, label: str) -> list[str]:
        """Return the value of `label` for every deployment that carries it."""
        apps = client.AppsV1Api(self._api)
        deployments = await apps.list_namespaced_deployment(
            namespace=namespace,
            label_selector=label,
        )

        values = []
        for deployment in deployments.items:
            labels = deployment.metadata.labels or {}
            value = labels.get(label)
            if value:
                values.append(value)
        return values

    async def delete_deployment(self, namespace: str, name: str) -> None:
        apps = client.AppsV1Api(self._api)

        self._log.info("k8s.delete_deployment", namespace=namespace, name=name)

        try:
            await apps.delete_namespaced_deployment(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                self._log.warning("k8s.delete_deployment.not_found", namespace=namespace, name=name)
            else:
                raise

    async def delete_service(self, namespace: str, name: str) -> None:
        v1 = client.CoreV1Api(self._api)

        self._log.info("k8s.delete_service", namespace=namespace, name=name)

        try:
            await v1.delete_namespaced_service(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                self._log.warning("k8s.delete_service.not_found", namespace=namespace, name=name)
            else:
                raise

    # Custom resources

    async def _delete_custom_object(
        self,
        *,
        group: str,
        version: str,
        plural: str,
        namespace: str,
        name: str,
    ) -> None:
        custom = client.CustomObjectsApi(self._api)

        self._log.info(
            "k8s.delete_custom_object",
            kind=plural,
            namespace=namespace,
            name=name,
        )

        try:
            await custom.delete_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                self._log.warning(
                    "k8s.delete_custom_object.not_found",
                    kind=plural,
                    namespace=namespace,
                    name=name,
                )
            else:
                raise

    async def delete_certificate(self, namespace: str, name: str) -> None:
        """Delete a cert-manager Certificate."""
        await self._delete_custom_object(
            group=CERT_MANAGER_GROUP,
            version=CERT_MANAGER_VERSION,
            plural="certificates",
            namespace=namespace,
            name=name,
        )

    async def delete_virtual_machine(self, namespace: str, name: str) -> None:
        """Delete a KubeVirt VirtualMachine."""
        await self._delete_custom_object(
            group=KUBEVIRT_GROUP,
            version=KUBEVIRT_VERSION,
            plural="virtualmachines",
            namespace=namespace,
            name=name,
        )
