"""Enumerates live preview environments across both backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from preview_gc.environments.base import MAIN_PREVIEW_NAME, PreviewEnvironment
from preview_gc.environments.coredev import CoreDevBackend, CoreDevPreviewEnvironment
from preview_gc.environments.harvester import HarvesterBackend, HarvesterPreviewEnvironment
from preview_gc.errors import InventoryError

if TYPE_CHECKING:
    from preview_gc.reporting import RunContext


class EnvironmentInventory:
    def __init__(self, coredev: CoreDevBackend, harvester: HarvesterBackend) -> None:
        self._coredev = coredev
        self._harvester = harvester

    async def _coredev_environments(self) -> list[PreviewEnvironment]:
        async with self._coredev.cluster.connect() as kube:
            namespaces = await kube.list_namespaces(
                prefix=CoreDevPreviewEnvironment.namespace_prefix,
                label_selector=self._coredev.config.namespace_label_selector,
            )
        return [CoreDevPreviewEnvironment(ns, self._coredev) for ns in namespaces]

    async def _harvester_environments(self) -> list[PreviewEnvironment]:
        async with self._harvester.cluster.connect() as kube:
            namespaces = await kube.list_namespaces(
                prefix=HarvesterPreviewEnvironment.namespace_prefix,
            )
        return [HarvesterPreviewEnvironment(ns, self._harvester) for ns in namespaces]

    async def list_all(self, ctx: "RunContext") -> list[PreviewEnvironment]:
        """All preview environments except the one for main.

        Raises:
            InventoryError: either backend could not be listed
        """
        slice_name = "Fetching preview environments"
        log = ctx.slice(slice_name)

        try:
            environments = await self._coredev_environments()
            environments += await self._harvester_environments()
        except Exception as e:
            ctx.fail(slice_name, e)
            raise InventoryError(f"listing preview namespaces failed: {e}") from e

        # The environment for main is never collected
        environments = [env for env in environments if env.name != MAIN_PREVIEW_NAME]

        for env in environments:
            log.info("preview.found", preview=env.name, namespace=env.namespace, backend=env.backend_name)
        log.info("preview.inventory", count=len(environments))
        ctx.done(slice_name)
        return environments
