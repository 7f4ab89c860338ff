"""CoreDev preview environments (`staging-<name>` namespaces on GKE).

Inactivity is determined by looking into the preview's own database. The
probe errs on the side of caution: anything unexpected means "active".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

import structlog

from preview_gc.environments.base import DNSRecord, PreviewEnvironment, delete_dns_records

if TYPE_CHECKING:
    from preview_gc.activity import DatabaseActivityProbe
    from preview_gc.config import ActivityConfig, CoreDevConfig
    from preview_gc.dns import CloudDNS
    from preview_gc.kube import KubeCluster
    from preview_gc.reporting import RunContext
    from preview_gc.shell import CommandRunner

logger = structlog.get_logger()


@dataclass
class CoreDevBackend:
    """Clients and settings shared by all CoreDev environments of a run."""

    cluster: "KubeCluster"
    dns: "CloudDNS"
    probe: "DatabaseActivityProbe"
    runner: "CommandRunner"
    config: "CoreDevConfig"
    activity: "ActivityConfig"


@dataclass(frozen=True)
class CoreDevPreviewEnvironment(PreviewEnvironment):
    namespace_prefix: ClassVar[str] = "staging-"
    backend_name: ClassVar[str] = "coredev"

    namespace: str
    backend: CoreDevBackend = field(compare=False, repr=False)

    async def is_inactive(self, ctx: "RunContext") -> bool:
        slice_name = f"Checking for DB activity in {self.namespace}"
        log = ctx.slice(slice_name, namespace=self.namespace)
        activity = self.backend.activity

        try:
            async with self.backend.cluster.connect() as kube:
                phase = await kube.namespace_phase(self.namespace)
                if phase != "Active":
                    log.info("preview.activity.result", inactive=False, reason=f"namespace is {phase}")
                    return False

                pod = await kube.pod_status(self.namespace, activity.db_pod)
                if not pod.running_and_ready:
                    log.info(
                        "preview.activity.result",
                        inactive=False,
                        reason="database is not reachable",
                        pod_phase=pod.phase,
                        pod_ready=pod.ready,
                    )
                    return False

                password = await kube.read_secret_value(
                    self.namespace,
                    activity.password_secret,
                    activity.password_key,
                )

            signals = await self.backend.probe.recent_activity(self.namespace, password)
            inactive = not any(signals.values())
            log.info("preview.activity.result", inactive=inactive, **signals)
            return inactive

        except Exception as e:
            log.warning(
                "preview.activity.result",
                inactive=False,
                reason="unable to check DB activity",
                error=str(e),
            )
            return False
        finally:
            ctx.done(slice_name)

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
            DNSRecord("TXT", f"_acme-challenge.{domain}"),
            DNSRecord("TXT", f"_acme-challenge.ws-dev.{domain}"),
        ]

    async def remove_dns_records(self, ctx: "RunContext") -> None:
        ctx.log.info("preview.dns.delete", backend=self.backend_name, preview=self.name)
        await delete_dns_records(self.backend.dns, self.backend.config.dns, self.dns_records())

    async def _helm_uninstall(self) -> None:
        cfg = self.backend.config
        argv = ["helm"]
        if cfg.kubeconfig:
            argv += ["--kubeconfig", cfg.kubeconfig]
        argv += ["--namespace", self.namespace, "uninstall", cfg.helm_release]

        result = await self.backend.runner.run(argv)
        if not result.ok and "not found" not in result.stderr.lower():
            result.check()

    async def delete(self, ctx: "RunContext") -> None:
        """Uninstall the release, drop workspace pods, then the namespace."""
        ctx.log.info("preview.delete", backend=self.backend_name, namespace=self.namespace)

        await self._helm_uninstall()
        async with self.backend.cluster.connect() as kube:
            await kube.delete_pods(
                self.namespace,
                label_selector=self.backend.config.workspace_pod_selector,
            )
            await kube.delete_namespace(self.namespace)
