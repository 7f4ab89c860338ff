"""Staleness classification of preview environments.

An environment is a deletion candidate when any of three signals holds:

- missing: no live branch maps to its namespace under either backend's
  naming convention
- stale branch: the branch that maps to it had no commits in the window
- inactive: its own activity probe reports no recent use

Namespace sets are built from both variants' conventions because
membership does not depend on which backend an environment runs on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Sequence

import structlog

from preview_gc.environments import VARIANTS

if TYPE_CHECKING:
    from preview_gc.branches import BranchInventory
    from preview_gc.environments import PreviewEnvironment
    from preview_gc.reporting import RunContext

logger = structlog.get_logger()


def expected_namespaces(
    branches: Iterable[str],
    variants: Sequence[type["PreviewEnvironment"]] = VARIANTS,
) -> set[str]:
    """Namespaces any backend would create for the given branches."""
    return {
        variant.expected_namespace_from_branch(branch)
        for branch in branches
        for variant in variants
    }


def union_by_namespace(*groups: Iterable["PreviewEnvironment"]) -> list["PreviewEnvironment"]:
    """Merge groups keeping the first occurrence of each namespace."""
    merged: dict[str, PreviewEnvironment] = {}
    for group in groups:
        for env in group:
            merged.setdefault(env.namespace, env)
    return list(merged.values())


@dataclass
class Classification:
    missing: list["PreviewEnvironment"] = field(default_factory=list)
    stale_by_branch: list["PreviewEnvironment"] = field(default_factory=list)
    stale_by_activity: list["PreviewEnvironment"] = field(default_factory=list)

    @property
    def candidates(self) -> list["PreviewEnvironment"]:
        return union_by_namespace(self.missing, self.stale_by_branch, self.stale_by_activity)


class StalenessClassifier:
    """Decides which environments are garbage."""

    def __init__(
        self,
        branches: "BranchInventory",
        *,
        window_days: int = 5,
        max_concurrent_checks: int = 16,
        max_concurrent_probes: int = 4,
        variants: Sequence[type["PreviewEnvironment"]] = VARIANTS,
    ) -> None:
        self._branches = branches
        self._window_days = window_days
        self._semaphore = asyncio.Semaphore(max_concurrent_checks)
        self._probe_semaphore = asyncio.Semaphore(max_concurrent_probes)
        self._variants = variants
        self._log = logger.bind(component="classifier")

    async def _is_stale_branch(self, ctx: "RunContext", branch: str) -> bool:
        async with self._semaphore:
            recent = await self._branches.has_recent_activity(branch, self._window_days)
        ctx.slice(f"Checking for commit activity on {branch}").info(
            "branch.activity",
            branch=branch,
            has_recent_commits=recent,
        )
        return not recent

    async def stale_branches(self, ctx: "RunContext", branches: Sequence[str]) -> list[str]:
        """Branches without commits inside the window.

        Raises:
            InventoryError: a branch could not be inspected
        """
        stale = await asyncio.gather(*(self._is_stale_branch(ctx, b) for b in branches))
        return [branch for branch, is_stale in zip(branches, stale) if is_stale]

    async def _is_inactive(self, ctx: "RunContext", env: "PreviewEnvironment") -> bool:
        async with self._probe_semaphore:
            return await env.is_inactive(ctx)

    async def classify(
        self,
        ctx: "RunContext",
        environments: Sequence["PreviewEnvironment"],
        branches: Sequence[str],
    ) -> Classification:
        ctx.phase("Determining stale preview environments")

        expected = expected_namespaces(branches, self._variants)
        stale_branch_names = await self.stale_branches(ctx, branches)
        stale_namespaces = expected_namespaces(stale_branch_names, self._variants)

        missing = [env for env in environments if env.namespace not in expected]
        stale_by_branch = [env for env in environments if env.namespace in stale_namespaces]

        # is_inactive never raises; every probe resolves to a bool
        inactive = await asyncio.gather(*(self._is_inactive(ctx, env) for env in environments))
        stale_by_activity = [env for env, flag in zip(environments, inactive) if flag]

        classification = Classification(
            missing=missing,
            stale_by_branch=stale_by_branch,
            stale_by_activity=stale_by_activity,
        )

        ctx.log.info(
            "gc.classify.complete",
            environments=len(environments),
            branches=len(branches),
            missing=[env.namespace for env in missing],
            stale_branch=[env.namespace for env in stale_by_branch],
            inactive=[env.namespace for env in stale_by_activity],
            candidates=len(classification.candidates),
        )
        return classification
