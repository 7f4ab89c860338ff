"""Per-run reporting context.

A RunContext is created for every GC cycle and passed explicitly into each
component call. It carries the bound logger for the run, the dry-run switch
and the outcome of every named slice (a unit of reported work such as
"Deleting preview my-branch").
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass
class RunContext:
    """Logging and outcome tracking scoped to one run."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    dry_run: bool = False
    failed_slices: dict[str, str] = field(default_factory=dict)
    done_slices: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.log = logger.bind(run_id=self.run_id, dry_run=self.dry_run)

    def phase(self, name: str, description: str = "") -> None:
        """Announce the start of a phase of the run."""
        self.log.info("run.phase", phase=name, description=description or name)

    def slice(self, name: str, **context: Any):
        """Return a logger bound to a named slice."""
        return self.log.bind(slice=name, **context)

    def done(self, name: str) -> None:
        self.done_slices.append(name)
        self.log.debug("run.slice.done", slice=name)

    def fail(self, name: str, error: BaseException | str) -> None:
        """Record a failed slice without raising."""
        self.failed_slices[name] = str(error)
        self.log.error("run.slice.failed", slice=name, error=str(error))

    @property
    def failed(self) -> bool:
        return bool(self.failed_slices)
