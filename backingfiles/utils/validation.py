"""
Validation utilities.

This module provides functions for validating prerequisites and arguments.
"""
import os
import shutil
import logging
from pathlib import Path

from backingfiles.utils.command import CommandRunner

logger = logging.getLogger('backingfiles')

# Tools needed for every run; mkfs.vfat and mkfs.exfat are installed on demand
REQUIRED_TOOLS = ["df", "fallocate", "sfdisk", "losetup"]


def check_prerequisites(cmd_runner: CommandRunner, mountpoint: Path) -> None:
    """
    Check for required tools, permissions and the backing-files mountpoint.

    Args:
        cmd_runner: CommandRunner instance for executing commands
        mountpoint: Backing-files mountpoint

    Raises:
        RuntimeError: If prerequisites are not met
    """
    # In simulation mode, just log what would be checked
    if cmd_runner.simulating:
        logger.info("Checking for required tools (simulated)")
        for tool in REQUIRED_TOOLS:
            logger.info(f"Tool '{tool}' would be checked")
        return

    if os.geteuid() != 0:
        raise RuntimeError("This script must be run as root")

    missing_tools = [tool for tool in REQUIRED_TOOLS if not shutil.which(tool)]
    if missing_tools:
        raise RuntimeError(
            f"Missing required tools: {', '.join(missing_tools)}\n"
            "Please install the necessary packages for your distribution and try again"
        )

    if not mountpoint.is_dir():
        raise RuntimeError(f"Backing files mountpoint {mountpoint} is not a directory")
