"""Contract shared by the collection tasks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from preview_gc.reporting import RunContext


@dataclass
class GCResult:
    """Outcome of one task in one cycle.

    `cleaned_count` counts removed previews or load balancers,
    `skipped_count` those only announced in dry-run. Any entry in `errors`
    makes the process exit non-zero.
    """

    task_name: str = ""
    cleaned_count: int = 0
    skipped_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def add_error(self, error: str) -> None:
        self.errors.append(error)


class GCTask(ABC):
    """A unit of collection work run by GCScheduler.

    Per-item failures (one preview, one load balancer) go into the result.
    Failures that leave the task without a trustworthy inventory are raised.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def run(self, ctx: "RunContext") -> GCResult: ...
