"""Tests for single drive provisioning."""

import pytest

from backingfiles.config import CAM_DRIVE, MUSIC_DRIVE
from backingfiles.core.drive import add_drive
from backingfiles.core.exceptions import FilesystemError, LoopDeviceError, NotEnoughSpaceError

from fakes import FakeDiskTools, write_existing


def test_add_drive_runs_full_sequence(make_config, mountpoint, tmp_path):
    config = make_config()
    tools = FakeDiskTools(free_kb=10**6)
    image = mountpoint / "cam_disk.bin"

    result = add_drive(CAM_DRIVE, 4096, config, tools, use_exfat=False)

    assert result == {"name": "cam", "path": str(image), "size_kb": 4096, "status": "created"}
    assert tools.calls == [
        ("allocate", image, 4096),
        ("partition", image, "type=c\n"),
        ("geometry", image),
        ("attach", image, 2048 * 512),
        ("mkfs", "/dev/loop7", "CAM", False),
        ("detach", "/dev/loop7"),
        ("mkdir", tmp_path / "mnt" / "cam"),
    ]
    assert (tmp_path / "mnt" / "cam").is_dir()


def test_add_drive_exfat(make_config):
    tools = FakeDiskTools(free_kb=10**6)

    add_drive(MUSIC_DRIVE, 2048, make_config(use_exfat=True), tools, use_exfat=True)

    assert ("mkfs", "/dev/loop7", "MUSIC", True) in tools.calls
    assert tools.calls[1][2] == "type=7\n"


def test_existing_file_is_left_untouched(make_config, mountpoint):
    image = mountpoint / "cam_disk.bin"
    write_existing(image, b"precious data")
    tools = FakeDiskTools(free_kb=10**6)

    result = add_drive(CAM_DRIVE, 4096, make_config(), tools, use_exfat=False)

    assert result["status"] == "existing"
    assert tools.calls == []
    assert image.read_bytes() == b"precious data"


def test_existing_file_wins_even_without_space(make_config, mountpoint):
    write_existing(mountpoint / "cam_disk.bin")
    result = add_drive(CAM_DRIVE, 0, make_config(), FakeDiskTools(free_kb=0), use_exfat=False)
    assert result["status"] == "existing"


def test_zero_size_new_drive_is_an_error(make_config):
    tools = FakeDiskTools(free_kb=0)
    with pytest.raises(NotEnoughSpaceError):
        add_drive(CAM_DRIVE, 0, make_config(), tools, use_exfat=False)
    assert tools.calls == []


def test_failed_mkfs_detaches_loop_and_keeps_file(make_config, mountpoint):
    tools = FakeDiskTools(free_kb=10**6, fail_mkfs=True)

    with pytest.raises(FilesystemError):
        add_drive(CAM_DRIVE, 4096, make_config(), tools, use_exfat=False)

    assert tools.calls[-1] == ("detach", "/dev/loop7")
    assert "mkdir" not in tools.names()
    # The half-made image now counts as provisioned
    assert (mountpoint / "cam_disk.bin").exists()
    retry = add_drive(CAM_DRIVE, 4096, make_config(), FakeDiskTools(free_kb=10**6), use_exfat=False)
    assert retry["status"] == "existing"


def test_mkfs_error_survives_failed_detach(make_config, caplog):
    tools = FakeDiskTools(free_kb=10**6, fail_mkfs=True, fail_detach=True)

    with pytest.raises(FilesystemError):
        add_drive(CAM_DRIVE, 4096, make_config(), tools, use_exfat=False)

    assert tools.calls[-1] == ("detach", "/dev/loop7")
    assert "Could not detach /dev/loop7" in caplog.text


def test_failed_detach_after_successful_mkfs_is_an_error(make_config):
    tools = FakeDiskTools(free_kb=10**6, fail_detach=True)

    with pytest.raises(LoopDeviceError):
        add_drive(CAM_DRIVE, 4096, make_config(), tools, use_exfat=False)

    assert "mkdir" not in tools.names()
