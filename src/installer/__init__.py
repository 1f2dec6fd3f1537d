"""Language-server installation.

- resolver.py: registry entry -> InstallationMethod via per-ecosystem parsers
- commands.py: InstallationMethod -> one external installer command
- runner.py: process boundary (spawn, stream output, exit status)
- state.py: installed-package state store and records
- persistence.py: JSON state file
- orchestrator.py: per-package install state machine
"""

from .errors import (  # noqa: F401
    ConcurrentInstallRejected,
    InstallCancelled,
    InstallError,
    NotInstalledError,
    ProcessExitError,
    ProcessSpawnError,
    UnexpectedOutputError,
    UnsupportedSource,
)
from .orchestrator import InstallationOrchestrator, InstallOutcome, InstallState  # noqa: F401
from .resolver import InstallationMethodResolver  # noqa: F401
from .runner import AsyncSubprocessRunner, ProcessResult, ProcessRunner, SpawnError  # noqa: F401
from .state import InstalledLanguageServer, InstalledPackageStateStore, StateChange  # noqa: F401

__all__ = [
    "ConcurrentInstallRejected",
    "InstallCancelled",
    "InstallError",
    "NotInstalledError",
    "ProcessExitError",
    "ProcessSpawnError",
    "UnexpectedOutputError",
    "UnsupportedSource",
    "InstallationOrchestrator",
    "InstallOutcome",
    "InstallState",
    "InstallationMethodResolver",
    "AsyncSubprocessRunner",
    "ProcessResult",
    "ProcessRunner",
    "SpawnError",
    "InstalledLanguageServer",
    "InstalledPackageStateStore",
    "StateChange",
]
