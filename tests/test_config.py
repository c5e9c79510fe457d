"""Tests for settings merging and overrides."""

import json
from pathlib import Path

import pytest

from fpmctl.local.config import MergedSettings
from fpmctl.local.supervisor import FpmProcess


@pytest.fixture
def overrides_path(tmp_path: Path) -> Path:
    return tmp_path / "overrides.json"


def test_defaults_loaded(overrides_path):
    settings = MergedSettings(overrides_path)
    assert settings.FPM_NAME
    assert settings.READY_TIMEOUT > 0
    assert "FPM_WORKERS" in settings.MODIFIABLE_SETTINGS


def test_overrides_applied_and_coerced(overrides_path):
    overrides_path.write_text(json.dumps({"FPM_WORKERS": "4", "READY_TIMEOUT": 3}))
    settings = MergedSettings(overrides_path)
    assert settings.FPM_WORKERS == 4
    assert settings.READY_TIMEOUT == 3.0


def test_non_modifiable_override_ignored(overrides_path):
    overrides_path.write_text(json.dumps({"FPM_EXECUTABLE": "/bin/false", "NOT_A_SETTING": 1}))
    settings = MergedSettings(overrides_path)
    assert settings.FPM_EXECUTABLE != "/bin/false"
    assert not hasattr(settings, "NOT_A_SETTING")


def test_malformed_overrides_ignored(overrides_path):
    overrides_path.write_text("{not json")
    settings = MergedSettings(overrides_path)
    assert settings.FPM_WORKERS > 0


def test_pid_file_timeout_may_be_unbounded(overrides_path):
    overrides_path.write_text(json.dumps({"PID_FILE_TIMEOUT": None}))
    assert MergedSettings(overrides_path).PID_FILE_TIMEOUT is None


def test_update_setting_persists(overrides_path):
    settings = MergedSettings(overrides_path)
    settings.update_setting("FPM_USER", "www-data")
    assert settings.FPM_USER == "www-data"
    assert json.loads(overrides_path.read_text())["FPM_USER"] == "www-data"
    assert MergedSettings(overrides_path).FPM_USER == "www-data"


def test_update_setting_rejects_unknown(overrides_path):
    settings = MergedSettings(overrides_path)
    with pytest.raises(KeyError):
        settings.update_setting("FPM_EXECUTABLE", "/bin/true")
    with pytest.raises(ValueError):
        settings.update_setting("FPM_WORKERS", "many")
    assert not overrides_path.exists()


@pytest.mark.parametrize("value", ["none", "None", "0", "", None])
def test_update_pid_file_timeout_unbounded(overrides_path, value):
    settings = MergedSettings(overrides_path)
    settings.update_setting("PID_FILE_TIMEOUT", value)
    assert settings.PID_FILE_TIMEOUT is None
    assert json.loads(overrides_path.read_text())["PID_FILE_TIMEOUT"] is None
    assert MergedSettings(overrides_path).PID_FILE_TIMEOUT is None


def test_update_pid_file_timeout_seconds(overrides_path):
    settings = MergedSettings(overrides_path)
    settings.update_setting("PID_FILE_TIMEOUT", "2.5")
    assert settings.PID_FILE_TIMEOUT == 2.5
    with pytest.raises(ValueError):
        settings.update_setting("PID_FILE_TIMEOUT", "-1")
    assert settings.PID_FILE_TIMEOUT == 2.5


@pytest.mark.parametrize("key, value", [
    ("FPM_WORKERS", "0"),
    ("FPM_WORKERS", "-3"),
    ("READY_TIMEOUT", "0"),
    ("GRACEFUL_SHUTDOWN_TIMEOUT", "-1"),
])
def test_update_setting_rejects_non_positive(overrides_path, key, value):
    settings = MergedSettings(overrides_path)
    before = getattr(settings, key)
    with pytest.raises(ValueError):
        settings.update_setting(key, value)
    assert getattr(settings, key) == before
    assert not overrides_path.exists()


def test_non_positive_override_ignored_on_load(overrides_path):
    overrides_path.write_text(json.dumps({"FPM_WORKERS": 0, "READY_TIMEOUT": 4}))
    settings = MergedSettings(overrides_path)
    assert settings.FPM_WORKERS > 0
    assert settings.READY_TIMEOUT == 4.0


def test_process_from_settings(overrides_path, tmp_path):
    settings = MergedSettings(overrides_path)
    settings.DATA_DIR = tmp_path
    settings.FPM_NAME = "pool"
    settings.FPM_LISTEN = "127.0.0.1:9001"
    settings.FPM_WORKERS = 2
    settings.CONFIG_FILE_PATH = tmp_path / "pool.conf"

    fpm = FpmProcess.from_settings(settings)
    assert fpm.name == "pool"
    assert fpm.pid_file == str(tmp_path / "pool.pid")
    assert fpm.error_log == str(tmp_path / "pool.error_log")
    assert fpm.listen == "127.0.0.1:9001"
    assert fpm.worker == 2
    assert fpm.config_file == str(tmp_path / "pool.conf")
    assert fpm.ready_timeout == settings.READY_TIMEOUT
