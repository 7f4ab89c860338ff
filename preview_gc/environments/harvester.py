"""Harvester preview environments (`preview-<name>` namespaces, one VM each)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from preview_gc.environments.base import DNSRecord, PreviewEnvironment, delete_dns_records

if TYPE_CHECKING:
    from preview_gc.config import HarvesterConfig
    from preview_gc.dns import CloudDNS
    from preview_gc.kube import KubeCluster
    from preview_gc.reporting import RunContext


@dataclass
class HarvesterBackend:
    cluster: "KubeCluster"
    dns: "CloudDNS"
    config: "HarvesterConfig"


@dataclass(frozen=True)
class HarvesterPreviewEnvironment(PreviewEnvironment):
    namespace_prefix: ClassVar[str] = "preview-"
    backend_name: ClassVar[str] = "harvester"

    namespace: str
    backend: HarvesterBackend = field(compare=False, repr=False)

    async def is_inactive(self, ctx: "RunContext") -> bool:
        # TODO: port the database activity probe once Harvester previews expose their DB
        return False

    def dns_records(self) -> list[DNSRecord]:
        domain = f"{self.name}.{self.backend.config.dns.domain}"
        return [
            DNSRecord("A", f"*.ws-dev.{domain}"),
            DNSRecord("A", f"*.{domain}"),
            DNSRecord("A", domain),
            DNSRecord("A", f"prometheus-{domain}"),
            DNSRecord("TXT", f"prometheus-{domain}"),
            DNSRecord("A", f"grafana-{domain}"),
            DNSRecord("TXT", f"grafana-{domain}"),
        ]

    async def remove_dns_records(self, ctx: "RunContext") -> None:
        ctx.log.info("preview.dns.delete", backend=self.backend_name, preview=self.name)
        await delete_dns_records(self.backend.dns, self.backend.config.dns, self.dns_records())

    async def delete(self, ctx: "RunContext") -> None:
        """Delete the VM and the namespace holding it."""
        ctx.log.info("preview.delete", backend=self.backend_name, namespace=self.namespace)

        async with self.backend.cluster.connect() as kube:
            await kube.delete_virtual_machine(self.namespace, self.name)
            await kube.delete_namespace(self.namespace)
