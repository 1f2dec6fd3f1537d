"""Process execution boundary for installer commands.

The orchestrator only decides which command to run; running it, streaming
its output and reporting the exit status is the runner's job.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from constants import Constants

from .commands import InstallCommand

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], None]

_READ_CHUNK_BYTES = 64 * 1024


class SpawnError(Exception):
    """The command could not be started at all."""

    def __init__(self, command: str, os_message: str):
        super().__init__(f"{command}: {os_message}")
        self.command = command
        self.os_message = os_message


@dataclass
class ProcessResult:
    """Outcome of a finished process."""

    exit_code: int
    output_tail: str = ""


class ProcessRunner(ABC):
    """Runs a command, streams its output and reports the exit code."""

    @abstractmethod
    async def run(self, command: InstallCommand, on_line: Optional[OutputCallback] = None) -> ProcessResult:
        """Run ``command`` to completion.

        Raises:
            SpawnError: when the process cannot be started.
            asyncio.CancelledError: when the awaiting task is cancelled.

        The process is terminated before any exception leaves ``run``,
        including one raised by ``on_line``.
        """


class AsyncSubprocessRunner(ProcessRunner):
    """ProcessRunner backed by ``asyncio.create_subprocess_exec``."""

    def __init__(self, tail_lines: Optional[int] = None, kill_timeout: float = 5.0):
        self._tail_lines = tail_lines or Constants.OUTPUT_TAIL_LINES
        self._kill_timeout = kill_timeout

    async def run(self, command: InstallCommand, on_line: Optional[OutputCallback] = None) -> ProcessResult:
        env = os.environ.copy()
        env.update(command.env)
        if command.install_path:
            os.makedirs(os.path.dirname(command.install_path) or ".", exist_ok=True)

        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=command.cwd,
                env=env,
            )
        except OSError as exc:
            raise SpawnError(command.argv[0], exc.strerror or str(exc)) from exc

        tail: deque = deque(maxlen=self._tail_lines)
        try:
            assert process.stdout is not None
            pending = b""
            while True:
                chunk = await process.stdout.read(_READ_CHUNK_BYTES)
                if not chunk:
                    break
                pending += chunk
                *complete, pending = pending.split(b"\n")
                # a line without newline is flushed once it reaches the chunk size
                if len(pending) >= _READ_CHUNK_BYTES:
                    complete.append(pending)
                    pending = b""
                for raw in complete:
                    self._emit(raw, tail, on_line)
            if pending:
                self._emit(pending, tail, on_line)
            exit_code = await process.wait()
        finally:
            if process.returncode is None:
                await self._terminate(process)

        return ProcessResult(exit_code=exit_code, output_tail="\n".join(tail))

    @staticmethod
    def _emit(raw: bytes, tail: deque, on_line: Optional[OutputCallback]) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        tail.append(line)
        if on_line is not None:
            on_line(line)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        logger.debug("Terminating installer process %s", process.pid)
        try:
            process.terminate()
        except ProcessLookupError:
            await process.wait()
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
        except asyncio.TimeoutError:
            logger.warning("Installer process %s ignored SIGTERM; killing it", process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()
