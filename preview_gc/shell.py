"""Non-blocking execution of external commands (git, gcloud, helm)."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Mapping, Sequence

import structlog

from preview_gc.errors import CommandError

logger = structlog.get_logger()


@dataclass(frozen=True)
class CommandResult:
    """Captured output of one command."""

    argv: tuple[str, ...]
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def check(self) -> CommandResult:
        """Raise CommandError unless the command succeeded."""
        if not self.ok:
            raise CommandError(self.argv, self.exit_code, self.stderr)
        return self


class CommandRunner:
    """Runs commands via asyncio subprocesses.

    Args:
        env: Extra environment variables applied to every command
        cwd: Default working directory
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        self._env = dict(env or {})
        self._cwd = cwd
        self._log = logger.bind(component="shell")

    async def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Execute argv and capture stdout, stderr and exit code.

        A missing executable is reported as exit code 127 rather than raised,
        so callers handle it like any other failed command.
        """
        argv = tuple(argv)
        merged_env = {**os.environ, **self._env, **(env or {})}

        self._log.debug("shell.run", argv=list(argv), cwd=cwd or self._cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd or self._cwd,
                env=merged_env,
            )
        except FileNotFoundError:
            return CommandResult(argv, "", f"{argv[0]} not found. Is it installed?", 127)

        stdout, stderr = await process.communicate()

        result = CommandResult(
            argv=argv,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=process.returncode or 0,
        )

        if not result.ok:
            self._log.debug(
                "shell.run.failed",
                argv=list(argv),
                exit_code=result.exit_code,
                stderr=result.stderr.strip()[-500:],
            )

        return result
