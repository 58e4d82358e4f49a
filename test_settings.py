#!/usr/bin/env python3
"""
Tests for configuration defaults, validation, persistence and environment
overrides.
"""

import json
import sys
from pathlib import Path

import pytest

# Add the resources directory to Python path
sys.path.insert(0, str(Path(__file__).parent / "resources"))

from keyboard_firmware_loader.config.settings import (
    AppConfig, LogLevel, TransferConfig, load_config
)
from keyboard_firmware_loader.services.archive_service import ArchiveService
from keyboard_firmware_loader.services.device_service import DeviceService

ENV_VARS = ("KFL_ARCHIVE_DIR", "KFL_MOUNT_PATH", "KFL_DEBUG", "KFL_LOG_LEVEL", "KFL_NO_PROGRESS")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_transfer_defaults():
    transfer = AppConfig().transfer

    assert transfer.max_attempts == 5
    assert transfer.retry_delay == 1.0
    assert transfer.settle_delay == 1.5
    assert transfer.poll_interval == 1.0
    assert transfer.post_copy_delay == 1.0
    assert transfer.wait_timeout is None


def test_firmware_pattern_defaults():
    firmware = AppConfig().firmware

    assert firmware.archive_extension == ".zip"
    assert firmware.left_pattern.startswith("sofle_left")
    assert firmware.right_pattern.startswith("sofle_right")


@pytest.mark.parametrize("overrides", [
    {"max_attempts": 0},
    {"retry_delay": -1},
    {"poll_interval": -0.5},
    {"wait_timeout": 0},
])
def test_invalid_transfer_settings_rejected(overrides):
    with pytest.raises(ValueError):
        AppConfig(transfer=TransferConfig(**overrides))


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("KFL_ARCHIVE_DIR", str(tmp_path / "archives"))
    monkeypatch.setenv("KFL_MOUNT_PATH", str(tmp_path / "NICENANO"))
    monkeypatch.setenv("KFL_LOG_LEVEL", "debug")
    monkeypatch.setenv("KFL_NO_PROGRESS", "yes")

    config = AppConfig()

    assert config.get_archive_directory() == tmp_path / "archives"
    assert config.get_mount_path() == tmp_path / "NICENANO"
    assert config.log_level == LogLevel.DEBUG
    assert config.ui.show_progress is False


def test_save_and_load_round_trip(tmp_path):
    config = AppConfig()
    config.paths.mount_path = str(tmp_path / "NICENANO")
    config.transfer.max_attempts = 3
    config.transfer.wait_timeout = 120.0
    config.log_level = LogLevel.WARNING
    config_file = tmp_path / "config.json"

    config.save_to_file(config_file)
    loaded = AppConfig.load_from_file(config_file)

    assert json.loads(config_file.read_text())["log_level"] == "WARNING"
    assert loaded.paths.mount_path == str(tmp_path / "NICENANO")
    assert loaded.transfer.max_attempts == 3
    assert loaded.transfer.wait_timeout == 120.0
    assert loaded.log_level == LogLevel.WARNING


def test_partial_file_keeps_defaults(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"transfer": {"retry_delay": 0.25}}))

    loaded = load_config(config_file)

    assert loaded.transfer.retry_delay == 0.25
    assert loaded.transfer.max_attempts == 5


def test_invalid_file_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"transfer": {"max_attempts": -2}}))

    assert load_config(config_file).transfer.max_attempts == 5


def test_missing_file_falls_back_to_defaults(tmp_path):
    assert load_config(tmp_path / "missing.json").transfer.max_attempts == 5


@pytest.mark.parametrize("value,debug,level", [
    ("1", True, LogLevel.DEBUG),
    ("true", True, LogLevel.DEBUG),
    ("0", False, LogLevel.INFO),
])
def test_debug_environment_flag_sets_log_level(monkeypatch, value, debug, level):
    monkeypatch.setenv("KFL_DEBUG", value)

    config = AppConfig()

    assert config.debug_mode is debug
    assert config.log_level == level


def test_explicit_log_level_wins_over_debug_flag(monkeypatch):
    monkeypatch.setenv("KFL_DEBUG", "1")
    monkeypatch.setenv("KFL_LOG_LEVEL", "warning")

    assert AppConfig().log_level == LogLevel.WARNING


def test_services_built_from_config(tmp_path):
    config = AppConfig()
    config.paths.archive_dir = str(tmp_path)
    config.paths.mount_path = str(tmp_path / "NICENANO")
    config.transfer.max_attempts = 2
    config.transfer.wait_timeout = 30.0

    archives = ArchiveService.from_config(config)
    device = DeviceService.from_config(config)

    assert archives.archive_dir == tmp_path
    assert device.mount_path == tmp_path / "NICENANO"
    assert device.max_attempts == 2
    assert device.wait_timeout == 30.0
