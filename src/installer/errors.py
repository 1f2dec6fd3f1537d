"""Installation error taxonomy.

Locator problems never show up here: the parser degrades them to UNKNOWN,
which the orchestrator reports as UnsupportedSource.
"""

from __future__ import annotations

from typing import Optional


class InstallError(Exception):
    """Base class for failures surfaced by the installation orchestrator."""

    reason = "install_failed"

    def __init__(self, package_name: str, message: str):
        super().__init__(message)
        self.package_name = package_name
        self.message = message

    def __str__(self) -> str:
        return f"{self.package_name}: {self.message}"


class UnsupportedSource(InstallError):
    """The registry entry resolved to UNKNOWN."""

    reason = "unsupported_source"

    def __init__(self, package_name: str, source: Optional[str] = None):
        detail = f" ({source})" if source else ""
        super().__init__(package_name, f"unsupported package source{detail}")
        self.source = source


class ProcessSpawnError(InstallError):
    """The installer command could not be started."""

    reason = "spawn_failed"

    def __init__(self, package_name: str, command: str, os_message: str):
        super().__init__(package_name, f"could not start {command!r}: {os_message}")
        self.command = command
        self.os_message = os_message


class ProcessExitError(InstallError):
    """The installer command ran but exited non-zero."""

    reason = "exit_status"

    def __init__(self, package_name: str, exit_code: int, output_tail: str = ""):
        super().__init__(package_name, f"installer exited with status {exit_code}")
        self.exit_code = exit_code
        self.output_tail = output_tail


class UnexpectedOutputError(InstallError):
    """The installer output could not be processed, or a successful run left no artifact."""

    reason = "unexpected_output"


class ConcurrentInstallRejected(InstallError):
    """Another operation for the same package is still in flight."""

    reason = "busy"

    def __init__(self, package_name: str):
        super().__init__(package_name, "an installation for this package is already in progress")


class InstallCancelled(InstallError):
    """The running installation was cancelled on request."""

    reason = "cancelled"

    def __init__(self, package_name: str):
        super().__init__(package_name, "installation cancelled")


class NotInstalledError(InstallError):
    """The package has no installation record."""

    reason = "not_installed"

    def __init__(self, package_name: str):
        super().__init__(package_name, "package is not installed")
