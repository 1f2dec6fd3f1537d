"""Tests for JSON persistence of installation records."""

import json
import os
from unittest.mock import patch

from installer.persistence import StateFile
from installer.state import InstalledLanguageServer, InstalledPackageStateStore


def _record(name, version="1.0", enabled=True):
    return InstalledLanguageServer(package_name=name, installed_version=version, is_enabled=enabled)


class TestStateFile:
    """Load and save."""

    def test_missing_file_is_empty(self, tmp_path):
        assert StateFile(str(tmp_path / "installed.json")).load() == []

    def test_save_then_load(self, tmp_path):
        state_file = StateFile(str(tmp_path / "nested" / "installed.json"))
        records = [_record("zls", "0.11.0", False), _record("gopls", "v0.14.2")]
        state_file.save(records)
        loaded = state_file.load()
        assert [r.package_name for r in loaded] == ["gopls", "zls"]
        assert loaded[1].is_enabled is False
        assert loaded[1].installed_at == records[0].installed_at

    def test_file_format(self, tmp_path):
        path = tmp_path / "installed.json"
        StateFile(str(path)).save([_record("gopls")])
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["installed"][0]["package_name"] == "gopls"
        assert data["installed"][0]["installed_version"] == "1.0"

    def test_no_temp_files_left(self, tmp_path):
        StateFile(str(tmp_path / "installed.json")).save([_record("gopls")])
        assert os.listdir(tmp_path) == ["installed.json"]

    def test_corrupt_file_is_ignored(self, tmp_path, caplog):
        path = tmp_path / "installed.json"
        path.write_text("{not json", encoding="utf-8")
        assert StateFile(str(path)).load() == []
        assert "unreadable state file" in caplog.text

    def test_malformed_records_skipped(self, tmp_path):
        path = tmp_path / "installed.json"
        path.write_text(json.dumps({
            "version": 1,
            "installed": [
                {"package_name": "gopls", "installed_version": "1.0"},
                {"package_name": "broken"},
                {"package_name": "empty", "installed_version": ""},
                "garbage",
            ],
        }), encoding="utf-8")
        loaded = StateFile(str(path)).load()
        assert [r.package_name for r in loaded] == ["gopls"]

    def test_failed_write_keeps_previous_file(self, tmp_path):
        path = tmp_path / "installed.json"
        state_file = StateFile(str(path))
        state_file.save([_record("gopls")])
        with patch("installer.persistence.os.replace", side_effect=OSError("disk full")):
            try:
                state_file.save([_record("zls")])
            except OSError:
                pass
        assert [r.package_name for r in state_file.load()] == ["gopls"]
        assert os.listdir(tmp_path) == ["installed.json"]


class TestAttach:
    """Automatic persistence on store changes."""

    def test_changes_are_saved(self, tmp_path):
        state_file = StateFile(str(tmp_path / "installed.json"))
        store = InstalledPackageStateStore()
        state_file.attach(store)

        store.set_installed("gopls", _record("gopls"))
        assert [r.package_name for r in state_file.load()] == ["gopls"]

        store.set_enabled("gopls", False)
        assert state_file.load()[0].is_enabled is False

        store.remove("gopls")
        assert state_file.load() == []

    def test_write_errors_are_logged(self, tmp_path, caplog):
        state_file = StateFile(str(tmp_path / "installed.json"))
        store = InstalledPackageStateStore()
        state_file.attach(store)
        with patch.object(StateFile, "save", side_effect=OSError("read-only")):
            store.set_installed("gopls", _record("gopls"))
        assert store.get("gopls") is not None
        assert "Could not persist installation state" in caplog.text

    def test_detach(self, tmp_path):
        state_file = StateFile(str(tmp_path / "installed.json"))
        store = InstalledPackageStateStore()
        detach = state_file.attach(store)
        detach()
        store.set_installed("gopls", _record("gopls"))
        assert not os.path.exists(state_file.path)
