"""Tests for the command line interface."""

import argparse
import logging

import pytest

from backingfiles import cli
from backingfiles.utils.logging import ProgressHookHandler, setup_logging


def sim_args(mountpoint, tmp_path, *sizes, extra=()):
    cam, music, boombox = sizes or ("50%", "10G", "0")
    return [
        cam, music, boombox, f"{mountpoint}/", "false",
        "--simulate", "--no-color", "--no-input",
        "--sim-free-space", "1G",
        "--mount-root", str(tmp_path / "mnt"),
        *extra,
    ]


def test_simulated_run_succeeds_without_changes(mountpoint, tmp_path, capsys):
    assert cli.main(sim_args(mountpoint, tmp_path)) == 0

    out = capsys.readouterr().out
    assert "Dry run finished, nothing was changed" in out
    assert "cam_disk.bin (" in out
    assert "mkfs.vfat /dev/loop0 -F 32 -n CAM" in out
    assert list(mountpoint.iterdir()) == []
    assert not (tmp_path / "mnt").exists()


def test_simulated_exfat_without_kernel_support(mountpoint, tmp_path, capsys):
    args = sim_args(mountpoint, tmp_path, extra=["--sim-no-exfat"])
    args[4] = "true"

    assert cli.main(args) == 0
    out = capsys.readouterr().out
    assert "mkfs.exfat" not in out
    assert "mkfs.vfat" in out


def test_unsupported_size_exits_with_error(mountpoint, tmp_path, capsys):
    assert cli.main(sim_args(mountpoint, tmp_path, "abc", "10G", "0")) == 1
    assert "Dry run finished" not in capsys.readouterr().out


def test_bad_exfat_flag_exits_with_error(mountpoint, tmp_path):
    args = sim_args(mountpoint, tmp_path)
    args[4] = "sometimes"
    assert cli.main(args) == 1


def test_bad_simulated_free_space(mountpoint, tmp_path):
    args = sim_args(mountpoint, tmp_path)
    args[args.index("1G")] = "lots"
    assert cli.main(args) == 1


def test_missing_arguments_exit_through_argparse():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["50%"])
    assert excinfo.value.code == 2


def test_declined_deletion_exits_cleanly(mountpoint, tmp_path, monkeypatch):
    (mountpoint / "cam_disk.bin").write_bytes(b"data")
    args = [a for a in sim_args(mountpoint, tmp_path) if a != "--no-input"]
    monkeypatch.setattr(cli, "confirmation_policy", lambda parsed: (lambda question: False))

    assert cli.main(args) == 0
    assert (mountpoint / "cam_disk.bin").read_bytes() == b"data"


def confirm_args(**overrides):
    values = dict(yes=False, no_input=False)
    values.update(overrides)
    return argparse.Namespace(**values)


def test_confirmation_policy(monkeypatch):
    assert cli.confirmation_policy(confirm_args(yes=True))("delete?") is True
    assert cli.confirmation_policy(confirm_args(no_input=True)) is None

    class FakeStdin:
        def __init__(self, tty):
            self.tty = tty

        def isatty(self):
            return self.tty

    monkeypatch.setattr("sys.stdin", FakeStdin(False))
    assert cli.confirmation_policy(confirm_args()) is None

    monkeypatch.setattr("sys.stdin", FakeStdin(True))
    assert cli.confirmation_policy(confirm_args()) is cli.prompt_confirmation


@pytest.mark.parametrize("answer, expected", [("yes", True), ("Y", True), ("cancel", False), ("", False)])
def test_prompt_confirmation(monkeypatch, answer, expected):
    monkeypatch.setattr("builtins.input", lambda question: answer)
    assert cli.prompt_confirmation("Delete? ") is expected


def test_prompt_confirmation_on_eof(monkeypatch):
    def raise_eof(question):
        raise EOFError

    monkeypatch.setattr("builtins.input", raise_eof)
    assert cli.prompt_confirmation("Delete? ") is False


def test_progress_hook_receives_prefixed_messages():
    messages = []
    logger = logging.getLogger("backingfiles")
    setup_logging(progress_hook=messages.append)
    try:
        logger.info("starting")
        logger.debug("not forwarded")
    finally:
        for handler in [h for h in logger.handlers if isinstance(h, ProgressHookHandler)]:
            logger.removeHandler(handler)

    assert messages == ["create-backingfiles: starting"]


def test_simulated_recreation_of_existing_files(mountpoint, tmp_path, capsys):
    (mountpoint / "cam_disk.bin").write_bytes(b"data")
    args = [a for a in sim_args(mountpoint, tmp_path) if a != "--no-input"] + ["--yes"]

    assert cli.main(args) == 0

    out = capsys.readouterr().out
    assert f"fallocate -l 519168K {mountpoint}/cam_disk.bin" in out
    assert (mountpoint / "cam_disk.bin").read_bytes() == b"data"


def test_main_forwards_progress_to_hook(mountpoint, tmp_path):
    messages = []

    assert cli.main(sim_args(mountpoint, tmp_path), progress_hook=messages.append) == 0

    assert "create-backingfiles: Starting" in messages
    assert "create-backingfiles: Done" in messages
    assert not [h for h in logging.getLogger("backingfiles").handlers if isinstance(h, ProgressHookHandler)]
