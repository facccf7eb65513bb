"""
Run configuration for backingfiles.

This module turns command line arguments into the immutable ProvisionConfig
and provides common utilities for preparing directories.
"""
import logging
from pathlib import Path
from typing import Any, Optional

from backingfiles.core.size import DEFAULT_RESERVE_KB, dehumanize
from backingfiles.utils.command import CommandRunner
from backingfiles.utils.types import DriveSpec, ProvisionConfig

logger = logging.getLogger('backingfiles')

# Constants
DEFAULT_MOUNT_ROOT = "/mnt"
MIN_REMAINING_KB = 1024

# Provisioned in this order; later drives never preempt earlier ones
CAM_DRIVE = DriveSpec("cam", "CAM", "cam_disk.bin")
MUSIC_DRIVE = DriveSpec("music", "MUSIC", "music_disk.bin")
BOOMBOX_DRIVE = DriveSpec("boombox", "BOOMBOX", "boombox_disk.bin")
DRIVES = (CAM_DRIVE, MUSIC_DRIVE, BOOMBOX_DRIVE)

_TRUE_VALUES = ("true", "yes", "1")
_FALSE_VALUES = ("false", "no", "0")


def parse_bool(value: str) -> bool:
    """
    Parse a true/false command line value.

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Expected true or false, got '{value}'")


def strip_trailing_slash(path: str) -> str:
    """Strip a single trailing slash that shell autocomplete might have added."""
    if len(path) > 1 and path.endswith("/"):
        return path[:-1]
    return path


def build_config(args: Any) -> ProvisionConfig:
    """
    Build the run configuration from parsed command line arguments.

    Args:
        args: Command line arguments

    Returns:
        ProvisionConfig for this run

    Raises:
        ValueError: If use_exfat is not a boolean
        UnsupportedSizeError: If the reserve is not an absolute size
    """
    reserve_kb = DEFAULT_RESERVE_KB
    if getattr(args, "reserve", None):
        reserve_kb = dehumanize(args.reserve) // 1024

    return ProvisionConfig(
        cam_size=args.cam_size,
        music_size=args.music_size,
        boombox_size=args.boombox_size,
        mountpoint=Path(strip_trailing_slash(args.mountpoint)),
        use_exfat=parse_bool(args.use_exfat),
        reserve_kb=reserve_kb,
        mount_root=Path(getattr(args, "mount_root", None) or DEFAULT_MOUNT_ROOT),
        min_remaining_kb=MIN_REMAINING_KB,
    )


def create_directory(
    path: Path,
    cmd_runner: CommandRunner,
    description: Optional[str] = None
) -> None:
    """
    Create a directory if it doesn't exist or log that it would be created in simulation mode.

    Args:
        path: Directory path to create
        cmd_runner: CommandRunner instance for executing commands
        description: Optional description of the directory for logging
    """
    desc = f"{description} " if description else ""

    if path.exists():
        logger.debug(f"{desc.capitalize()}directory already exists: {path}")
        return

    if cmd_runner.simulating:
        logger.info(f"Would create {desc}directory: {path}")
    else:
        path.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Created {desc}directory: {path}")
