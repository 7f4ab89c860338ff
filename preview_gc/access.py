"""Credential setup performed before any cluster or DNS call.

Failures here are fatal: without credentials no inventory can be trusted.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from preview_gc.errors import CommandError, SetupError

if TYPE_CHECKING:
    from preview_gc.config import Settings
    from preview_gc.shell import CommandRunner

logger = structlog.get_logger()


async def _activate_service_account(runner: "CommandRunner", key_file: str) -> None:
    result = await runner.run(
        ["gcloud", "auth", "activate-service-account", f"--key-file={key_file}"]
    )
    result.check()


async def _install_coredev_credentials(runner: "CommandRunner", settings: "Settings") -> None:
    coredev = settings.coredev
    env = {"KUBECONFIG": coredev.kubeconfig} if coredev.kubeconfig else None
    result = await runner.run(
        [
            "gcloud",
            "container",
            "clusters",
            "get-credentials",
            coredev.gke_cluster,
            f"--zone={coredev.gke_zone}",
            f"--project={coredev.gke_project}",
        ],
        env=env,
    )
    result.check()


def _copy_kubeconfig(source: str, target: str) -> None:
    Path(target).parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)


async def configure_access(settings: "Settings", runner: "CommandRunner") -> None:
    """Activate the service account and install both kubeconfigs.

    Raises:
        SetupError: any step failed
    """
    log = logger.bind(component="access")
    if not settings.access.enabled:
        log.info("access.skipped")
        return

    try:
        if settings.access.service_account_key:
            log.info("access.service_account", key_file=settings.access.service_account_key)
            await _activate_service_account(runner, settings.access.service_account_key)

        if settings.coredev.gke_cluster:
            log.info("access.coredev", cluster=settings.coredev.gke_cluster)
            await _install_coredev_credentials(runner, settings)

        harvester = settings.harvester
        if harvester.kubeconfig_source and harvester.kubeconfig:
            log.info("access.harvester", source=harvester.kubeconfig_source)
            await asyncio.to_thread(_copy_kubeconfig, harvester.kubeconfig_source, harvester.kubeconfig)
    except (CommandError, OSError) as e:
        log.error("access.failed", error=str(e))
        raise SetupError(f"configuring access failed: {e}") from e

    log.info("access.configured")
