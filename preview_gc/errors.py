"""preview-gc error types.

Fatal errors abort the run (setup, inventory). Contained errors are caught
per environment or per load balancer and reported in the task result.
"""

from __future__ import annotations

from typing import Any, Sequence


class PreviewGCError(Exception):
    """Base error for all preview-gc exceptions."""

    code: str = "internal_error"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)


class SetupError(PreviewGCError):
    """Credential or configuration install failed (fatal)."""

    code = "setup_failed"
    message = "Failed to configure access"


class InventoryError(PreviewGCError):
    """Branch or namespace listing failed (fatal).

    Without a complete inventory no valid candidate set can be computed.
    """

    code = "inventory_failed"
    message = "Failed to fetch inventory"


class CommandError(PreviewGCError):
    """External command exited with a non-zero status."""

    code = "command_failed"
    message = "Command failed"

    def __init__(
        self,
        argv: Sequence[str],
        exit_code: int,
        stderr: str = "",
    ) -> None:
        self.argv = list(argv)
        self.exit_code = exit_code
        self.stderr = stderr
        last_line = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        super().__init__(
            f"{self.argv[0] if self.argv else '?'} exited with {exit_code}: {last_line}".rstrip(": "),
            details={"argv": self.argv, "exit_code": exit_code},
        )


class TeardownError(PreviewGCError):
    """One step of an environment teardown failed."""

    code = "teardown_failed"
    message = "Teardown step failed"

    def __init__(self, namespace: str, step: str, cause: BaseException) -> None:
        self.namespace = namespace
        self.step = step
        self.cause = cause
        super().__init__(
            f"{namespace}: {step} failed: {cause}",
            details={"namespace": namespace, "step": step},
        )


class DNSRecordsError(PreviewGCError):
    """One or more DNS records of an environment could not be deleted."""

    code = "dns_delete_failed"
    message = "Failed to delete DNS records"

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = failures
        super().__init__(
            f"{len(failures)} DNS record(s) not deleted: " + ", ".join(sorted(failures)),
            details={"records": {name: str(e) for name, e in failures.items()}},
        )
