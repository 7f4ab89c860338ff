"""Cloud DNS record deletion through the gcloud CLI."""

from __future__ import annotations

import structlog

from preview_gc.shell import CommandRunner

logger = structlog.get_logger()

# gcloud reports a record that is already gone with one of these
_NOT_FOUND_MARKERS = (
    "not found",
    "does not exist",
    "httperror 404",
)


class CloudDNS:
    """Deletes record sets by (type, name, project, zone)."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner
        self._log = logger.bind(component="dns")

    async def delete_record(
        self,
        record_type: str,
        name: str,
        project: str,
        zone: str,
    ) -> None:
        """Delete one record set. An absent record counts as deleted.

        Raises:
            CommandError: gcloud failed for any other reason
        """
        fqdn = name if name.endswith(".") else f"{name}."
        argv = [
            "gcloud",
            "dns",
            "record-sets",
            "delete",
            fqdn,
            f"--type={record_type}",
            f"--zone={zone}",
            f"--project={project}",
            "--quiet",
        ]

        self._log.info("dns.delete_record", type=record_type, name=fqdn, zone=zone)

        result = await self._runner.run(argv)
        if result.ok:
            return

        stderr = result.stderr.lower()
        if any(marker in stderr for marker in _NOT_FOUND_MARKERS):
            self._log.warning("dns.delete_record.not_found", type=record_type, name=fqdn, zone=zone)
            return

        result.check()
