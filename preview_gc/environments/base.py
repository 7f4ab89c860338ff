"""Preview environment contract.

Both backends implement the same four capabilities: an inactivity probe,
DNS record removal, resource deletion and the branch naming convention.
Variants are immutable values identified by their namespace.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

import structlog

from preview_gc.branches import preview_name_from_branch
from preview_gc.errors import DNSRecordsError

if TYPE_CHECKING:
    from preview_gc.config import DNSZoneConfig
    from preview_gc.dns import CloudDNS
    from preview_gc.reporting import RunContext

logger = structlog.get_logger()

MAIN_PREVIEW_NAME = "main"


@dataclass(frozen=True)
class DNSRecord:
    record_type: str  # A | TXT
    name: str


class PreviewEnvironment(ABC):
    """A per-branch preview environment living in one namespace."""

    namespace_prefix: ClassVar[str]
    backend_name: ClassVar[str]

    namespace: str

    @property
    def name(self) -> str:
        """Preview name: the namespace without the backend prefix."""
        return self.namespace.removeprefix(self.namespace_prefix)

    @classmethod
    def expected_namespace_from_branch(cls, branch: str) -> str:
        """Namespace this backend would create for a branch."""
        return f"{cls.namespace_prefix}{preview_name_from_branch(branch)}"

    @abstractmethod
    async def is_inactive(self, ctx: "RunContext") -> bool:
        """Whether the environment shows no recent activity.

        Must return False on any uncertainty.
        """
        ...

    @abstractmethod
    def dns_records(self) -> list[DNSRecord]:
        """Records created for this environment."""
        ...

    @abstractmethod
    async def remove_dns_records(self, ctx: "RunContext") -> None:
        ...

    @abstractmethod
    async def delete(self, ctx: "RunContext") -> None:
        """Tear down the backend resources of the environment."""
        ...


async def delete_dns_records(
    dns: "CloudDNS",
    zone: "DNSZoneConfig",
    records: list[DNSRecord],
) -> None:
    """Delete records concurrently.

    Raises:
        DNSRecordsError: naming every record that failed, once all finished
    """
    results = await asyncio.gather(
        *(
            dns.delete_record(record.record_type, record.name, zone.project, zone.zone)
            for record in records
        ),
        return_exceptions=True,
    )

    failures: dict[str, BaseException] = {}
    for record, result in zip(records, results):
        if isinstance(result, BaseException):
            key = f"{record.record_type} {record.name}"
            logger.error("dns.delete_record.failed", record=key, zone=zone.zone, error=str(result))
            failures[key] = result
    if failures:
        raise DNSRecordsError(failures)
