"""Tests for the installation orchestrator state machine."""

import asyncio
import os

import pytest

from constants import Constants
from helpers import GOPLS, RIPGREP, FakeRunner, make_item
from installer.commands import staging_path_for
from installer.errors import (
    ConcurrentInstallRejected,
    InstallCancelled,
    NotInstalledError,
    ProcessExitError,
    ProcessSpawnError,
    UnexpectedOutputError,
    UnsupportedSource,
)
from installer.orchestrator import InstallationOrchestrator, InstallState
from installer.resolver import InstallationMethodResolver
from installer.runner import AsyncSubprocessRunner
from installer.state import InstalledLanguageServer, InstalledPackageStateStore
from registry.catalog import RegistryCatalogStore


class _Fixture:
    """Orchestrator wired to in-memory stores and a FakeRunner."""

    def __init__(self, root, runner=None, on_output=None):
        self.root = str(root)
        self.catalog = RegistryCatalogStore([RIPGREP, GOPLS])
        self.state = InstalledPackageStateStore()
        self.runner = runner or FakeRunner()
        self.catalog_updates = []
        self.catalog.subscribe(self.catalog_updates.append)
        self.orchestrator = InstallationOrchestrator(
            catalog=self.catalog,
            state=self.state,
            resolver=InstallationMethodResolver(),
            runner=self.runner,
            install_root=self.root,
            on_output=on_output,
        )


@pytest.fixture
def env(tmp_path):
    return _Fixture(tmp_path / "servers")


class TestSuccessfulInstall:
    """RESOLVING -> INSTALLING -> SUCCEEDED."""

    def test_install_records_state(self, env):
        outcome = asyncio.run(env.orchestrator.install(RIPGREP))
        assert outcome.succeeded
        assert outcome.error is None
        record = env.state.get("ripgrep")
        assert record == outcome.record
        assert record.installed_version == "14.1.0"
        assert record.is_enabled is True
        assert record.install_path == os.path.join(env.root, "ripgrep")
        assert env.orchestrator.state_of("ripgrep") is InstallState.SUCCEEDED
        assert not env.orchestrator.is_busy("ripgrep")

    def test_exactly_one_process(self, env):
        asyncio.run(env.orchestrator.install(RIPGREP))
        assert len(env.runner.calls) == 1
        assert env.runner.calls[0].argv[:2] == ["cargo", "install"]

    def test_catalog_notified(self, env):
        asyncio.run(env.orchestrator.install(RIPGREP))
        assert len(env.catalog_updates) == 1

    def test_idle_before_any_install(self, env):
        assert env.orchestrator.state_of("ripgrep") is InstallState.IDLE

    def test_reinstall_starts_fresh(self, env):
        first = asyncio.run(env.orchestrator.install(RIPGREP))
        second = asyncio.run(env.orchestrator.install(RIPGREP))
        assert first.succeeded and second.succeeded
        assert first is not second
        assert len(env.runner.calls) == 2
        assert env.state.get("ripgrep").installed_at >= first.record.installed_at

    def test_enabled_flag_preserved_on_reinstall(self, env):
        env.state.set_installed("ripgrep", InstalledLanguageServer("ripgrep", "14.0.0", is_enabled=False))
        outcome = asyncio.run(env.orchestrator.install(RIPGREP))
        assert outcome.record.installed_version == "14.1.0"
        assert outcome.record.is_enabled is False

    def test_output_lines_forwarded(self, tmp_path):
        seen = []
        fixture = _Fixture(
            tmp_path, runner=FakeRunner(lines=["Compiling", "Finished"]),
            on_output=lambda name, line: seen.append((name, line)),
        )
        outcome = asyncio.run(fixture.orchestrator.install(RIPGREP))
        assert seen == [("ripgrep", "Compiling"), ("ripgrep", "Finished")]
        assert outcome.output_tail == "Compiling\nFinished"

    def test_install_many_keeps_order(self, env):
        outcomes = asyncio.run(env.orchestrator.install_many([GOPLS, RIPGREP]))
        assert [o.package_name for o in outcomes] == ["gopls", "ripgrep"]
        assert all(o.succeeded for o in outcomes)
        assert sorted(env.state.all()) == ["gopls", "ripgrep"]


class TestFailedInstall:
    """Failures end in FAILED with a typed error and no record."""

    def _assert_failed(self, env, outcome, error_type):
        assert outcome.state is InstallState.FAILED
        assert isinstance(outcome.error, error_type)
        assert outcome.record is None
        assert env.state.get(outcome.package_name) is None
        assert env.orchestrator.state_of(outcome.package_name) is InstallState.FAILED
        assert not env.orchestrator.is_busy(outcome.package_name)
        assert env.catalog_updates == []

    def test_unknown_source(self, env):
        item = make_item("broken", "not-a-valid-locator", "cargo")
        outcome = asyncio.run(env.orchestrator.install(item))
        self._assert_failed(env, outcome, UnsupportedSource)
        assert env.runner.calls == []

    def test_missing_ecosystem(self, env):
        item = make_item("mystery", "pkg:cargo/ripgrep@14.1.0", None)
        outcome = asyncio.run(env.orchestrator.install(item))
        self._assert_failed(env, outcome, UnsupportedSource)
        assert env.runner.calls == []

    def test_non_zero_exit(self, tmp_path):
        fixture = _Fixture(tmp_path, runner=FakeRunner(exit_code=101, lines=["error[E0425]"]))
        outcome = asyncio.run(fixture.orchestrator.install(RIPGREP))
        self._assert_failed(fixture, outcome, ProcessExitError)
        assert outcome.error.exit_code == 101
        assert outcome.error.output_tail == "error[E0425]"
        assert outcome.error.package_name == "ripgrep"

    def test_spawn_error(self, tmp_path):
        fixture = _Fixture(tmp_path, runner=FakeRunner(spawn_error="No such file or directory"))
        outcome = asyncio.run(fixture.orchestrator.install(RIPGREP))
        self._assert_failed(fixture, outcome, ProcessSpawnError)
        assert outcome.error.command == "cargo"
        assert outcome.error.os_message == "No such file or directory"

    def test_missing_artifact(self, tmp_path):
        fixture = _Fixture(tmp_path, runner=FakeRunner(create_artifact=False))
        outcome = asyncio.run(fixture.orchestrator.install(RIPGREP))
        self._assert_failed(fixture, outcome, UnexpectedOutputError)

    def test_output_handler_error(self, tmp_path):
        def on_output(name, line):
            raise UnicodeError(f"cannot display {line}")

        fixture = _Fixture(tmp_path, runner=FakeRunner(lines=["compiling"]), on_output=on_output)
        outcome = asyncio.run(fixture.orchestrator.install(RIPGREP))
        self._assert_failed(fixture, outcome, UnexpectedOutputError)
        assert "cannot display compiling" in outcome.error.message

    def test_raise_for_error(self, env):
        outcome = asyncio.run(env.orchestrator.install(make_item("broken", "nope", "cargo")))
        with pytest.raises(UnsupportedSource):
            outcome.raise_for_error()

    def test_retry_after_failure(self, tmp_path):
        runner = FakeRunner(exit_code=1)
        fixture = _Fixture(tmp_path, runner=runner)
        assert not asyncio.run(fixture.orchestrator.install(RIPGREP)).succeeded
        runner.exit_code = 0
        assert asyncio.run(fixture.orchestrator.install(RIPGREP)).succeeded


class TestConcurrency:
    """At most one operation per package name."""

    def test_second_install_rejected(self, env):
        async def scenario():
            env.runner.gate = asyncio.Event()
            first = asyncio.ensure_future(env.orchestrator.install(GOPLS))
            await asyncio.sleep(0)
            assert env.orchestrator.state_of("gopls") is InstallState.INSTALLING
            second = await env.orchestrator.install(GOPLS)
            # the rejection leaves the running operation untouched
            assert env.orchestrator.state_of("gopls") is InstallState.INSTALLING
            env.runner.gate.set()
            return await first, second

        first, second = asyncio.run(scenario())
        assert first.succeeded
        assert second.state is InstallState.FAILED
        assert isinstance(second.error, ConcurrentInstallRejected)
        assert len(env.runner.calls) == 1
        assert env.state.get("gopls") is not None

    def test_install_many_with_duplicate_name(self, env):
        async def scenario():
            env.runner.gate = asyncio.Event()
            pending = asyncio.ensure_future(env.orchestrator.install_many([RIPGREP, RIPGREP]))
            # one step for gather to spawn its tasks, one for each task to start
            for _ in range(3):
                await asyncio.sleep(0)
            env.runner.gate.set()
            return await pending

        outcomes = asyncio.run(scenario())
        assert outcomes[0].succeeded
        assert isinstance(outcomes[1].error, ConcurrentInstallRejected)
        assert len(env.runner.calls) == 1

    def test_different_names_run_concurrently(self, env):
        async def scenario():
            env.runner.gate = asyncio.Event()
            tasks = [asyncio.ensure_future(env.orchestrator.install(item)) for item in (GOPLS, RIPGREP)]
            await asyncio.sleep(0)
            running = len(env.runner.calls)
            env.runner.gate.set()
            return running, await asyncio.gather(*tasks)

        running, outcomes = asyncio.run(scenario())
        assert running == 2
        assert all(o.succeeded for o in outcomes)


class TestCancel:
    """Cancellation of a running install."""

    def test_cancel_running_install(self, env):
        async def scenario():
            env.runner.gate = asyncio.Event()
            task = asyncio.ensure_future(env.orchestrator.install(GOPLS))
            await asyncio.sleep(0)
            assert env.orchestrator.cancel("gopls") is True
            return await task

        outcome = asyncio.run(scenario())
        assert outcome.state is InstallState.FAILED
        assert isinstance(outcome.error, InstallCancelled)
        assert env.state.get("gopls") is None
        assert env.orchestrator.state_of("gopls") is InstallState.FAILED
        assert not env.orchestrator.is_busy("gopls")

    def test_cancel_nothing_running(self, env):
        assert env.orchestrator.cancel("gopls") is False

    def test_outside_cancellation_propagates(self, env):
        async def scenario():
            env.runner.gate = asyncio.Event()
            task = asyncio.ensure_future(env.orchestrator.install(GOPLS))
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert not env.orchestrator.is_busy("gopls")
        assert env.state.get("gopls") is None


class TestEnableAndUninstall:
    """Record maintenance outside of installs."""

    def test_set_enabled(self, env):
        asyncio.run(env.orchestrator.install(RIPGREP))
        record = env.orchestrator.set_enabled("ripgrep", False)
        assert record.is_enabled is False
        assert env.state.get("ripgrep").is_enabled is False

    def test_set_enabled_not_installed(self, env):
        with pytest.raises(NotInstalledError):
            env.orchestrator.set_enabled("ripgrep", True)

    def test_set_enabled_record_removed_concurrently(self, env, monkeypatch):
        asyncio.run(env.orchestrator.install(RIPGREP))
        monkeypatch.setattr(env.state, "get", lambda name: None)
        with pytest.raises(NotInstalledError):
            env.orchestrator.set_enabled("ripgrep", False)

    def test_uninstall_removes_record_and_files(self, env):
        outcome = asyncio.run(env.orchestrator.install(RIPGREP))
        assert os.path.isdir(outcome.record.install_path)
        removed = env.orchestrator.uninstall("ripgrep")
        assert removed.package_name == "ripgrep"
        assert env.state.get("ripgrep") is None
        assert not os.path.exists(outcome.record.install_path)
        assert env.orchestrator.state_of("ripgrep") is InstallState.IDLE
        assert len(env.catalog_updates) == 2

    def test_uninstall_not_installed(self, env):
        with pytest.raises(NotInstalledError):
            env.orchestrator.uninstall("ripgrep")
        assert not env.orchestrator.is_busy("ripgrep")

    def test_uninstall_keeps_files_outside_root(self, env, tmp_path):
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        env.state.set_installed("ripgrep", InstalledLanguageServer("ripgrep", "1.0", install_path=str(outside)))
        env.orchestrator.uninstall("ripgrep")
        assert outside.is_dir()
        assert env.state.get("ripgrep") is None

    def test_uninstall_while_installing(self, env):
        async def scenario():
            env.runner.gate = asyncio.Event()
            task = asyncio.ensure_future(env.orchestrator.install(GOPLS))
            await asyncio.sleep(0)
            with pytest.raises(ConcurrentInstallRejected):
                env.orchestrator.uninstall("gopls")
            env.runner.gate.set()
            return await task

        assert asyncio.run(scenario()).succeeded


FAKE_PIP = """#!/bin/sh
# called as: <python> -m pip install --upgrade --target DIR REQUIREMENT
target="$6"
requirement="$7"
case "$requirement" in
    *broken*) echo "ERROR: No matching distribution found for $requirement"; exit 1 ;;
esac
mkdir -p "$target" && echo "$requirement" > "$target/installed.txt"
"""


class TestStagedReinstall:
    """Reinstalls replace the previous files only once the new install succeeded."""

    @pytest.fixture
    def real_env(self, tmp_path, monkeypatch):
        python = tmp_path / "fake-python"
        python.write_text(FAKE_PIP, encoding="utf-8")
        os.chmod(python, 0o755)
        monkeypatch.setattr(Constants, "PYTHON_EXECUTABLE", str(python))
        return _Fixture(tmp_path / "servers", runner=AsyncSubprocessRunner(kill_timeout=2.0))

    @staticmethod
    def _pip_item(version):
        return make_item("demo", f"pkg:pypi/demo@{version}", "pip")

    def test_pip_reinstall_drops_stale_files(self, real_env):
        first = asyncio.run(real_env.orchestrator.install(self._pip_item("1.0")))
        assert first.succeeded, first.output_tail
        path = first.record.install_path
        with open(os.path.join(path, "stale.txt"), "w", encoding="utf-8") as handle:
            handle.write("left over from 1.0")

        second = asyncio.run(real_env.orchestrator.install(self._pip_item("2.0")))
        assert second.succeeded, second.output_tail
        assert sorted(os.listdir(path)) == ["installed.txt"]
        with open(os.path.join(path, "installed.txt"), encoding="utf-8") as handle:
            assert handle.read().strip() == "demo==2.0"
        assert real_env.state.get("demo").installed_version == "2.0"

    def test_failed_pip_reinstall_keeps_previous_install(self, real_env):
        first = asyncio.run(real_env.orchestrator.install(self._pip_item("1.0")))
        assert first.succeeded, first.output_tail

        outcome = asyncio.run(real_env.orchestrator.install(self._pip_item("broken")))
        assert isinstance(outcome.error, ProcessExitError)
        assert "No matching distribution" in outcome.output_tail
        with open(os.path.join(first.record.install_path, "installed.txt"), encoding="utf-8") as handle:
            assert handle.read().strip() == "demo==1.0"
        assert real_env.state.get("demo").installed_version == "1.0"
        assert not os.path.exists(staging_path_for(first.record.install_path))

    def test_failed_git_reinstall_keeps_previous_checkout(self, real_env, tmp_path):
        path = os.path.join(real_env.root, "repo")
        os.makedirs(os.path.join(path, ".git"))
        with open(os.path.join(path, "server.bin"), "w", encoding="utf-8") as handle:
            handle.write("working build")
        previous = InstalledLanguageServer("repo", "v1.0", install_path=path)
        real_env.state.set_installed("repo", previous)

        missing = f"file://{tmp_path}/missing-repo.git"
        item = make_item("repo", f"pkg:git/repo@v2.0?repository_url={missing}", "git")
        outcome = asyncio.run(real_env.orchestrator.install(item))

        assert isinstance(outcome.error, ProcessExitError)
        assert os.path.isfile(os.path.join(path, "server.bin"))
        assert real_env.state.get("repo") == previous
        assert not os.path.exists(staging_path_for(path))
