"""Installation orchestrator.

Drives one installation per call through
``IDLE -> RESOLVING -> INSTALLING -> SUCCEEDED | FAILED``: resolves the
registry entry, runs exactly one installer process, and records the result in
the state store. At most one operation per package name is in flight; a second
request for the same name is rejected immediately instead of queued.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from registry.catalog import RegistryCatalogStore
from registry.models import RegistryItem

from .commands import build_command
from .errors import (
    ConcurrentInstallRejected,
    InstallCancelled,
    InstallError,
    NotInstalledError,
    ProcessExitError,
    ProcessSpawnError,
    UnexpectedOutputError,
    UnsupportedSource,
)
from .resolver import InstallationMethodResolver
from .runner import ProcessRunner, SpawnError
from .state import InstalledLanguageServer, InstalledPackageStateStore

logger = logging.getLogger(__name__)

OutputListener = Callable[[str, str], None]


class InstallState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    INSTALLING = "installing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class InstallOutcome:
    """Result of one ``install()`` call."""
    package_name: str
    state: InstallState
    record: Optional[InstalledLanguageServer] = None
    error: Optional[InstallError] = None
    output_tail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is InstallState.SUCCEEDED

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


@dataclass
class _Operation:
    package_name: str
    state: InstallState = InstallState.RESOLVING
    task: Optional["asyncio.Task"] = None
    cancel_requested: bool = False


class InstallationOrchestrator:
    """Resolves, installs and records language servers.

    The orchestrator is the only writer of the state store. ``install`` and
    ``cancel`` are meant to be called from the event loop thread; the state
    store itself may be read from any thread.
    """

    def __init__(
        self,
        catalog: RegistryCatalogStore,
        state: InstalledPackageStateStore,
        resolver: InstallationMethodResolver,
        runner: ProcessRunner,
        install_root: str,
        on_output: Optional[OutputListener] = None,
    ):
        self._catalog = catalog
        self._state = state
        self._resolver = resolver
        self._runner = runner
        self._install_root = install_root
        self._on_output = on_output
        self._in_flight: Dict[str, _Operation] = {}
        self._last: Dict[str, InstallState] = {}
        self._lock = threading.Lock()

    # ---------- state queries ----------

    def state_of(self, name: str) -> InstallState:
        """Live state of an in-flight operation, else the last terminal state, else IDLE."""
        with self._lock:
            op = self._in_flight.get(name)
            if op is not None:
                return op.state
            return self._last.get(name, InstallState.IDLE)

    def is_busy(self, name: str) -> bool:
        with self._lock:
            return name in self._in_flight

    def _claim(self, name: str) -> Optional[_Operation]:
        # Check and mark in one step so two callers can never both see IDLE
        with self._lock:
            if name in self._in_flight:
                return None
            op = _Operation(package_name=name)
            self._in_flight[name] = op
            return op

    def _finish(self, op: _Operation, state: InstallState) -> None:
        with self._lock:
            op.state = state
            self._in_flight.pop(op.package_name, None)
            self._last[op.package_name] = state

    # ---------- install ----------

    async def install(self, entry: RegistryItem) -> InstallOutcome:
        """Install a registry entry.

        Returns:
            InstallOutcome; failures carry a typed InstallError instead of raising.
        """
        name = entry.name
        op = self._claim(name)
        if op is None:
            logger.warning("Install of %s rejected: already in progress", name)
            return InstallOutcome(name, InstallState.FAILED, error=ConcurrentInstallRejected(name))

        op.task = asyncio.current_task()
        try:
            outcome = await self._run(entry, op)
        except asyncio.CancelledError:
            if not op.cancel_requested:
                self._finish(op, InstallState.FAILED)
                raise
            if op.task is not None and hasattr(op.task, "uncancel"):
                op.task.uncancel()
            logger.info("Install of %s cancelled", name)
            outcome = InstallOutcome(name, InstallState.FAILED, error=InstallCancelled(name))
        except Exception:
            self._finish(op, InstallState.FAILED)
            raise

        self._finish(op, outcome.state)
        return outcome

    async def install_many(self, entries: Iterable[RegistryItem]) -> List[InstallOutcome]:
        """Install several entries concurrently; outcomes keep the input order."""
        return list(await asyncio.gather(*(self.install(entry) for entry in entries)))

    def _fail(self, name: str, error: InstallError, output_tail: str = "") -> InstallOutcome:
        logger.error("Install of %s failed: %s", name, error.message)
        return InstallOutcome(name, InstallState.FAILED, error=error, output_tail=output_tail)

    async def _run(self, entry: RegistryItem, op: _Operation) -> InstallOutcome:
        name = entry.name
        method = self._resolver.resolve(entry)
        if method.is_unknown:
            return self._fail(name, UnsupportedSource(name, entry.source))
        try:
            command = build_command(method, self._install_root)
        except ValueError as exc:
            logger.debug("No install command for %s: %s", name, exc)
            return self._fail(name, UnsupportedSource(name, entry.source))

        with self._lock:
            op.state = InstallState.INSTALLING
        logger.info("Installing %s: %s", name, command.display())

        try:
            result = await self._runner.run(command, on_line=lambda line: self._emit(name, line))
        except SpawnError as exc:
            return self._fail(name, ProcessSpawnError(name, exc.command, exc.os_message))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.debug("Installer run for %s aborted", name, exc_info=True)
            return self._fail(name, UnexpectedOutputError(name, f"installer output could not be processed: {exc}"))

        if result.exit_code != 0:
            return self._fail(
                name,
                ProcessExitError(name, result.exit_code, result.output_tail),
                output_tail=result.output_tail,
            )
        if not os.path.exists(command.artifact):
            return self._fail(
                name,
                UnexpectedOutputError(name, f"installer finished but {command.artifact} is missing"),
                output_tail=result.output_tail,
            )

        previous = self._state.get(name)
        record = InstalledLanguageServer(
            package_name=name,
            installed_version=method.source.version,
            is_enabled=previous.is_enabled if previous is not None else True,
            install_path=command.install_path,
        )
        self._state.set_installed(name, record)
        self._catalog.notify_updated()
        logger.info("Installed %s %s", name, record.installed_version)
        return InstallOutcome(name, InstallState.SUCCEEDED, record=record, output_tail=result.output_tail)

    def _emit(self, name: str, line: str) -> None:
        logger.debug("[%s] %s", name, line)
        if self._on_output is not None:
            self._on_output(name, line)

    def cancel(self, name: str) -> bool:
        """Cancel the in-flight install of ``name``; returns False when nothing runs."""
        with self._lock:
            op = self._in_flight.get(name)
            if op is None or op.task is None or op.task.done():
                return False
            op.cancel_requested = True
        op.task.cancel()
        return True

    # ---------- enable / uninstall ----------

    def set_enabled(self, name: str, enabled: bool) -> InstalledLanguageServer:
        """Toggle a server on or off.

        Raises:
            NotInstalledError: when ``name`` has no record.
        """
        record = self._state.get(name) if self._state.set_enabled(name, enabled) else None
        if record is None:
            raise NotInstalledError(name)
        logger.info("%s %s", "Enabled" if enabled else "Disabled", name)
        return record

    def uninstall(self, name: str) -> InstalledLanguageServer:
        """Remove a server's record and its files under the install root.

        Raises:
            ConcurrentInstallRejected: while an install of ``name`` is running.
            NotInstalledError: when ``name`` has no record.
        """
        op = self._claim(name)
        if op is None:
            raise ConcurrentInstallRejected(name)
        try:
            record = self._state.get(name)
            if record is None:
                raise NotInstalledError(name)
            self._remove_files(record)
            self._state.remove(name)
            self._catalog.notify_updated()
            logger.info("Uninstalled %s", name)
            return record
        finally:
            with self._lock:
                self._in_flight.pop(name, None)
                self._last.pop(name, None)

    def _remove_files(self, record: InstalledLanguageServer) -> None:
        path = record.install_path
        if not path or not os.path.exists(path):
            return
        root = os.path.realpath(self._install_root)
        target = os.path.realpath(path)
        if target == root or os.path.commonpath([root, target]) != root:
            logger.warning("Not removing %s: outside of install root %s", path, self._install_root)
            return
        try:
            shutil.rmtree(target)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", target, exc)
