"""Shared fakes for installer tests."""

import os

from installer.runner import ProcessResult, ProcessRunner, SpawnError
from registry.models import RegistryItem


def make_item(name, source, ecosystem):
    return RegistryItem(name=name, description=f"{name} language server", source=source, ecosystem=ecosystem)


RIPGREP = make_item("ripgrep", "pkg:cargo/ripgrep@14.1.0", "cargo")
GOPLS = make_item("gopls", "pkg:golang/golang.org/x/tools/gopls@v0.14.2", "go")


class FakeRunner(ProcessRunner):
    """ProcessRunner that records commands instead of spawning processes.

    A successful run creates the command's artifact directory so the
    orchestrator's post-install check passes. ``gate`` (an asyncio.Event
    created inside the running loop) holds every run until it is set.
    """

    def __init__(self, exit_code=0, lines=(), create_artifact=True, spawn_error=None):
        self.exit_code = exit_code
        self.lines = list(lines)
        self.create_artifact = create_artifact
        self.spawn_error = spawn_error
        self.gate = None
        self.calls = []

    async def run(self, command, on_line=None):
        self.calls.append(command)
        if self.spawn_error is not None:
            raise SpawnError(command.argv[0], self.spawn_error)
        if self.gate is not None:
            await self.gate.wait()
        for line in self.lines:
            if on_line is not None:
                on_line(line)
        if self.create_artifact and self.exit_code == 0:
            os.makedirs(command.artifact, exist_ok=True)
        return ProcessResult(exit_code=self.exit_code, output_tail="\n".join(self.lines))
