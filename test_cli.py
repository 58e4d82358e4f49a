#!/usr/bin/env python3
"""
End-to-end tests of the command line application and its prompts, using a
temporary directory as the bootloader volume.
"""

import json
import sys
import zipfile
from pathlib import Path

import pytest

# Add the resources directory to Python path
sys.path.insert(0, str(Path(__file__).parent / "resources"))

import main
from keyboard_firmware_loader.config.settings import AppConfig, TransferConfig
from keyboard_firmware_loader.models.firmware import KeyboardSide
from keyboard_firmware_loader.services.device_service import OperationCancelledError
from keyboard_firmware_loader.utils.prompts import confirm, select_option

FAST_TRANSFER = {
    "poll_interval": 0,
    "settle_delay": 0,
    "prepare_delay": 0,
    "post_copy_delay": 0,
    "retry_delay": 0,
}


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in ("KFL_ARCHIVE_DIR", "KFL_MOUNT_PATH", "KFL_DEBUG", "KFL_LOG_LEVEL", "KFL_NO_PROGRESS"):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def workspace(tmp_path):
    downloads = tmp_path / "Downloads"
    mount = tmp_path / "NICENANO"
    downloads.mkdir()
    mount.mkdir()

    archive = downloads / "firmware.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("sofle_left-nice_nano_v2-zmk.uf2", b"LEFT")
        zf.writestr("sofle_right-nice_nano_v2-zmk.uf2", b"RIGHT")

    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({
        "paths": {"archive_dir": str(downloads), "mount_path": str(mount)},
        "transfer": FAST_TRANSFER,
        "ui": {"show_progress": False, "colored_output": False},
    }))

    return {"downloads": downloads, "mount": mount, "archive": archive, "config": config_file}


def make_app(workspace, answers=()):
    config = AppConfig(transfer=TransferConfig(**FAST_TRANSFER))
    config.paths.archive_dir = str(workspace["downloads"])
    config.paths.mount_path = str(workspace["mount"])
    config.ui.show_progress = False
    config.ui.colored_output = False

    replies = iter(answers)
    app = main.FirmwareLoaderApp(config, input_func=lambda prompt: next(replies))
    app.initialize()
    return app


def test_full_run_flashes_both_halves(workspace):
    exit_code = main.main(["--config", str(workspace["config"]),
                           "--archive", str(workspace["archive"]), "--keep-archive"])

    assert exit_code == main.EXIT_SUCCESS
    assert (workspace["mount"] / "sofle_left-nice_nano_v2-zmk.uf2").read_bytes() == b"LEFT"
    assert (workspace["mount"] / "sofle_right-nice_nano_v2-zmk.uf2").read_bytes() == b"RIGHT"
    assert workspace["archive"].exists()


def test_delete_archive_after_success(workspace):
    exit_code = main.main(["--config", str(workspace["config"]),
                           "--archive", str(workspace["archive"]), "--delete-archive"])

    assert exit_code == main.EXIT_SUCCESS
    assert not workspace["archive"].exists()


def test_single_side_run(workspace):
    exit_code = main.main(["--config", str(workspace["config"]), "--side", "right",
                           "--archive", str(workspace["archive"]), "--keep-archive"])

    assert exit_code == main.EXIT_SUCCESS
    assert not (workspace["mount"] / "sofle_left-nice_nano_v2-zmk.uf2").exists()
    assert (workspace["mount"] / "sofle_right-nice_nano_v2-zmk.uf2").exists()


def test_no_archives_exits_with_failure(workspace, tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()

    exit_code = main.main(["--config", str(workspace["config"]), "--archive-dir", str(empty)])

    assert exit_code == main.EXIT_FAILURE


def test_list_archives(workspace, capsys):
    exit_code = main.main(["--config", str(workspace["config"]), "--list"])

    assert exit_code == main.EXIT_SUCCESS
    assert "firmware.zip (just now)" in capsys.readouterr().out


def test_archive_without_right_firmware_fails(workspace, tmp_path):
    broken = tmp_path / "left-only.zip"
    with zipfile.ZipFile(broken, "w") as zf:
        zf.writestr("sofle_left_v2.uf2", b"LEFT")

    exit_code = main.main(["--config", str(workspace["config"]), "--archive", str(broken)])

    assert exit_code == main.EXIT_FAILURE
    assert list(workspace["mount"].iterdir()) == []


def test_wait_timeout_exits_with_failure(workspace, tmp_path):
    exit_code = main.main(["--config", str(workspace["config"]),
                           "--mount-path", str(tmp_path / "never-mounted"),
                           "--wait-timeout", "0.05",
                           "--archive", str(workspace["archive"])])

    assert exit_code == main.EXIT_FAILURE


def test_cancellation_exits_with_distinct_status(workspace, monkeypatch):
    def cancelled(self, **kwargs):
        raise OperationCancelledError("Operation cancelled by user")

    monkeypatch.setattr(main.FirmwareLoaderApp, "run_flash", cancelled)

    exit_code = main.main(["--config", str(workspace["config"])])

    assert exit_code == main.EXIT_CANCELLED


def test_cancel_event_aborts_waiting(workspace):
    app = make_app(workspace)
    app.cancel_event.set()

    with pytest.raises(OperationCancelledError):
        app.run_flash(archive=str(workspace["archive"]), delete_archive=False)


def test_interactive_selection_and_deletion_prompt(workspace):
    app = make_app(workspace, answers=["1", "y"])

    exit_code = app.run_flash()
    app.cleanup()

    assert exit_code == main.EXIT_SUCCESS
    assert not workspace["archive"].exists()


def test_declining_deletion_keeps_archive(workspace):
    app = make_app(workspace, answers=["", "n"])

    assert app.run_flash() == main.EXIT_SUCCESS
    assert workspace["archive"].exists()


def test_debug_run_reports_sizes_and_durations(workspace, capsys):
    exit_code = main.main(["--config", str(workspace["config"]), "--debug",
                           "--archive", str(workspace["archive"]), "--keep-archive"])

    out = capsys.readouterr().out
    assert exit_code == main.EXIT_SUCCESS
    assert "sofle_left-nice_nano_v2-zmk.uf2: 4 bytes" in out
    assert "left half done in 1 attempt(s)" in out
    assert "right half done in 1 attempt(s)" in out


def test_encrypted_archive_is_an_extraction_error(workspace, tmp_path, capsys):
    locked = tmp_path / "locked.zip"
    data = bytearray(workspace["archive"].read_bytes())
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = data.find(signature)
        while start != -1:
            data[start + flag_offset] |= 0x01
            start = data.find(signature, start + 4)
    locked.write_bytes(bytes(data))

    exit_code = main.main(["--config", str(workspace["config"]), "--archive", str(locked)])

    out = capsys.readouterr().out
    assert exit_code == main.EXIT_FAILURE
    assert "encrypted" in out
    assert "Unexpected error" not in out


def test_save_config_writes_effective_settings(workspace, tmp_path):
    target = tmp_path / "saved" / "config.json"

    exit_code = main.main(["--config", str(target), "--mount-path", str(workspace["mount"]),
                           "--wait-timeout", "45", "--save-config"])

    saved = json.loads(target.read_text())
    assert exit_code == main.EXIT_SUCCESS
    assert saved["paths"]["mount_path"] == str(workspace["mount"])
    assert saved["transfer"]["wait_timeout"] == 45.0
    assert list(workspace["mount"].iterdir()) == []


@pytest.mark.parametrize("choice,expected", [
    ("both", (KeyboardSide.LEFT, KeyboardSide.RIGHT)),
    ("left", (KeyboardSide.LEFT,)),
    ("right", (KeyboardSide.RIGHT,)),
])
def test_resolve_sides(choice, expected):
    assert main.resolve_sides(choice) == expected


def test_resolve_sides_rejects_unknown_side():
    with pytest.raises(ValueError):
        main.resolve_sides("middle")


def test_wait_timeout_must_be_positive(workspace):
    with pytest.raises(SystemExit) as excinfo:
        main.main(["--wait-timeout", "-1"])
    assert excinfo.value.code == 2


# Prompts

def test_select_option_reasks_on_invalid_input():
    replies = iter(["9", "abc", "2"])
    shown = []

    chosen = select_option("Pick:", ["a.zip", "b.zip"],
                           input_func=lambda prompt: next(replies),
                           output_func=shown.append)

    assert chosen == "b.zip"
    assert "  2) b.zip" in shown


def test_select_option_requires_options():
    with pytest.raises(ValueError):
        select_option("Pick:", [])


@pytest.mark.parametrize("answer,expected", [
    ("y", True), ("YES", True), ("n", False), ("", False),
])
def test_confirm(answer, expected):
    assert confirm("Delete?", input_func=lambda prompt: answer) is expected


def test_confirm_treats_eof_as_default():
    def closed(prompt):
        raise EOFError

    assert confirm("Delete?", default=False, input_func=closed) is False
