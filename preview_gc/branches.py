"""Remote branch inventory.

Branches are read from the local clone's remote-tracking refs. Any git
failure here is fatal for the run: a partial branch list would make every
environment of a missing branch look orphaned.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from preview_gc.config import BranchConfig
from preview_gc.errors import CommandError, InventoryError
from preview_gc.shell import CommandRunner

logger = structlog.get_logger()

DEFAULT_ACTIVITY_WINDOW_DAYS = 5

# Longer names are shortened to a prefix plus a hash of the full name
MAX_PREVIEW_NAME_LENGTH = 20

_INVALID_NAME_CHARS = re.compile(r"[^-a-z0-9]")


def preview_name_from_branch(branch: str) -> str:
    """Map a branch name to the preview name the deploy pipeline uses."""
    sanitized = branch.removeprefix("refs/heads/").lower()
    sanitized = _INVALID_NAME_CHARS.sub("-", sanitized)
    if len(sanitized) <= MAX_PREVIEW_NAME_LENGTH:
        return sanitized

    digest = hashlib.sha256(sanitized.encode("utf-8")).hexdigest()
    return f"{sanitized[:10]}{digest[:10]}"


@dataclass(frozen=True)
class Branch:
    """A branch of the tracked remote, without the remote prefix."""

    name: str


class BranchInventory:
    """Lists remote branches and checks their commit recency."""

    def __init__(self, runner: CommandRunner, config: BranchConfig) -> None:
        self._runner = runner
        self._config = config
        self._remote = config.remote
        self._log = logger.bind(component="branches", remote=config.remote)

    async def _git(self, *args: str) -> str:
        result = await self._runner.run(["git", *args], cwd=self._config.repo_path)
        return result.check().stdout

    async def fetch(self) -> None:
        """Refresh remote-tracking refs, dropping deleted branches."""
        self._log.info("branches.fetch")
        try:
            await self._git("fetch", "--prune", self._remote)
        except CommandError as e:
            raise InventoryError(f"git fetch failed: {e}") from e

    async def list_branches(self) -> list[Branch]:
        """List branches of the remote, excluding symbolic refs like HEAD."""
        try:
            output = await self._git(
                "for-each-ref",
                "--format=%(refname:short)%09%(symref)",
                f"refs/remotes/{self._remote}",
            )
        except CommandError as e:
            raise InventoryError(f"listing branches failed: {e}") from e

        prefix = f"{self._remote}/"
        branches = []
        for line in output.splitlines():
            if not line.strip():
                continue
            refname, _, symref = line.partition("\t")
            if symref.strip():
                continue
            name = refname.removeprefix(prefix)
            if name == self._remote or name == "HEAD":
                continue
            branches.append(Branch(name=name))

        self._log.info("branches.list", count=len(branches))
        return branches

    async def has_recent_activity(
        self,
        branch: str,
        window_days: int = DEFAULT_ACTIVITY_WINDOW_DAYS,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Whether at least one commit exists on the branch within the window."""
        since = (now or datetime.now(timezone.utc)) - timedelta(days=window_days)
        try:
            output = await self._git(
                "log",
                f"{self._remote}/{branch}",
                f"--since={since.isoformat()}",
                "--format=%H",
                "-n",
                "1",
                "--",
            )
        except CommandError as e:
            raise InventoryError(f"checking activity of {branch} failed: {e}") from e

        recent = bool(output.strip())
        self._log.debug("branches.activity", branch=branch, has_recent_commits=recent)
        return recent
