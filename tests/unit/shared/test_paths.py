"""Unit tests for chrome_cmd.shared.paths module."""

import importlib
from pathlib import Path

import pytest


@pytest.mark.cli_unit
class TestPaths:
    """Tests for path constants and functions."""

    def test_files_live_in_config_dir(self):
        from chrome_cmd.shared import paths

        assert paths.CONFIG_FILE == paths.CONFIG_DIR / "config.json"
        assert paths.BRIDGES_FILE == paths.CONFIG_DIR / "bridges.json"
        assert paths.SETTINGS_FILE == paths.CONFIG_DIR / "settings.yaml"
        assert paths.LOG_DIR == paths.CONFIG_DIR / "logs"

    def test_default_location(self, monkeypatch):
        """Without CHROME_CMD_HOME the directory is ~/.config/chrome-cmd."""
        from chrome_cmd.shared import paths

        monkeypatch.delenv("CHROME_CMD_HOME", raising=False)
        try:
            reloaded = importlib.reload(paths)
            assert reloaded.CONFIG_DIR == Path.home() / ".config" / "chrome-cmd"
        finally:
            importlib.reload(paths)

    def test_env_override(self, monkeypatch, tmp_path):
        from chrome_cmd.shared import paths

        monkeypatch.setenv("CHROME_CMD_HOME", str(tmp_path / "custom"))
        try:
            reloaded = importlib.reload(paths)
            assert reloaded.CONFIG_DIR == tmp_path / "custom"
            assert reloaded.BRIDGES_FILE == tmp_path / "custom" / "bridges.json"
        finally:
            monkeypatch.delenv("CHROME_CMD_HOME")
            importlib.reload(paths)

    def test_get_log_file(self, chrome_home):
        from chrome_cmd.shared.paths import get_log_file

        assert get_log_file() == chrome_home.log_dir / "bridge.log"
        assert get_log_file("peer") == chrome_home.log_dir / "peer.log"


@pytest.mark.cli_unit
class TestEnsureDirs:
    """Tests for ensure_dirs function."""

    def test_ensure_dirs_creates_directories(self, chrome_home):
        from chrome_cmd.shared.paths import ensure_dirs

        ensure_dirs()

        assert chrome_home.root.is_dir()
        assert chrome_home.log_dir.is_dir()
        assert oct(chrome_home.root.stat().st_mode & 0o777) == oct(0o700)

    def test_ensure_dirs_is_idempotent(self, chrome_home):
        from chrome_cmd.shared.paths import ensure_dirs

        ensure_dirs()
        ensure_dirs()

        assert chrome_home.log_dir.is_dir()
