"""Teardown of preview environments.

Within one environment the steps run strictly in order:

1. certificate: removed first so cert-manager does not try to renew it
   while the namespace disappears
2. DNS records: removed before compute so no record points at a
   half-deleted backend
3. backend resources

Environments are torn down concurrently. A failure is contained to its
environment and never cancels the others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import structlog

from preview_gc.errors import TeardownError

if TYPE_CHECKING:
    from preview_gc.environments import PreviewEnvironment
    from preview_gc.kube import KubeCluster
    from preview_gc.reporting import RunContext

logger = structlog.get_logger()


@dataclass
class TeardownReport:
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    would_delete: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class TeardownOrchestrator:
    """Deletes candidate environments.

    Args:
        certificates: Cluster holding the per-preview certificates
        certificate_namespace: Namespace of those certificates
    """

    def __init__(
        self,
        certificates: "KubeCluster",
        certificate_namespace: str = "certs",
    ) -> None:
        self._certificates = certificates
        self._certificate_namespace = certificate_namespace
        self._log = logger.bind(component="teardown")

    async def _remove_certificate(self, env: "PreviewEnvironment") -> None:
        async with self._certificates.connect() as kube:
            await kube.delete_certificate(self._certificate_namespace, env.name)

    async def _teardown_one(self, ctx: "RunContext", env: "PreviewEnvironment") -> None:
        steps = (
            ("certificate", lambda: self._remove_certificate(env)),
            ("dns", lambda: env.remove_dns_records(ctx)),
            ("resources", lambda: env.delete(ctx)),
        )
        for step, action in steps:
            try:
                await action()
            except Exception as e:
                raise TeardownError(env.namespace, step, e) from e

    async def _teardown_isolated(
        self,
        ctx: "RunContext",
        env: "PreviewEnvironment",
        report: TeardownReport,
    ) -> None:
        slice_name = f"Deleting preview {env.name}"
        log = ctx.slice(slice_name, namespace=env.namespace, backend=env.backend_name)
        log.info("gc.teardown.start")

        try:
            await self._teardown_one(ctx, env)
        except Exception as e:
            log.exception("gc.teardown.failed", error=str(e))
            ctx.fail(slice_name, e)
            report.failed[env.namespace] = str(e)
            return

        log.info("gc.teardown.complete")
        ctx.done(slice_name)
        report.deleted.append(env.namespace)

    async def run(
        self,
        ctx: "RunContext",
        candidates: Sequence["PreviewEnvironment"],
    ) -> TeardownReport:
        report = TeardownReport()
        ctx.phase("Deleting stale preview environments")

        if ctx.dry_run:
            for env in candidates:
                ctx.log.info(
                    "gc.teardown.would_delete",
                    preview=env.name,
                    namespace=env.namespace,
                    backend=env.backend_name,
                )
                report.would_delete.append(env.namespace)
            return report

        await asyncio.gather(
            *(self._teardown_isolated(ctx, env, report) for env in candidates)
        )

        ctx.log.info(
            "gc.teardown.summary",
            deleted=len(report.deleted),
            failed=len(report.failed),
        )
        return report
