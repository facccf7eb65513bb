"""
Disk and system tool capabilities.

The provisioning logic only talks to the two interfaces defined here. The
command-backed implementations run the real tools through a CommandRunner
(which may itself be simulating); tests substitute in-memory fakes.
"""
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from backingfiles.config import create_directory
from backingfiles.core.exceptions import (
    AllocationError, FilesystemError, FreeSpaceError, LoopDeviceError, PartitioningError
)
from backingfiles.core.filesystem import mkfs_command
from backingfiles.utils.command import CommandRunner
from backingfiles.utils.format import TermColors, colorize
from backingfiles.utils.types import PartitionGeometry

logger = logging.getLogger('backingfiles')

PROC_FILESYSTEMS = "/proc/filesystems"


class DiskTools(ABC):
    """Operations that touch the backing-files device"""

    @abstractmethod
    def free_space_kb(self, mountpoint: Path) -> int:
        """Free kilobytes on the filesystem holding mountpoint"""

    @abstractmethod
    def allocate(self, path: Path, size_kb: int) -> None:
        """Allocate a file of exactly size_kb kilobytes"""

    @abstractmethod
    def write_partition_table(self, path: Path, script: str) -> None:
        """Write a partition table described by an sfdisk script"""

    @abstractmethod
    def read_partition_geometry(self, path: Path) -> PartitionGeometry:
        """Read back the geometry of the first partition"""

    @abstractmethod
    def attach_loop(self, path: Path, offset: int) -> str:
        """Attach a loop device at a byte offset and return its path"""

    @abstractmethod
    def make_filesystem(self, device: str, label: str, use_exfat: bool) -> None:
        """Create an ExFAT or FAT32 filesystem on a device"""

    @abstractmethod
    def detach_loop(self, device: str) -> None:
        """Detach a loop device"""

    @abstractmethod
    def make_directory(self, path: Path, description: Optional[str] = None) -> None:
        """Create a directory if it doesn't exist"""

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Whether a backing file is present, as seen by the other operations"""

    @abstractmethod
    def remove(self, path: Path) -> None:
        """Remove a file or a directory tree"""


class SystemTools(ABC):
    """Host queries and best-effort administration commands"""

    @abstractmethod
    def exfat_supported(self) -> bool:
        """Whether the running kernel can mount ExFAT"""

    @abstractmethod
    def has_command(self, name: str) -> bool:
        """Whether an executable is available on PATH"""

    @abstractmethod
    def install_package(self, package: str) -> bool:
        """Install a distribution package, returning True on success"""

    @abstractmethod
    def run_best_effort(self, cmd: List[str]) -> bool:
        """Run a command whose failure is tolerated, returning True on success"""


def _last_line_int(output: str) -> int:
    """Parse the integer on the last non-empty line of a tool's output."""
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    if not lines:
        raise ValueError("empty output")
    return int(lines[-1])


class CommandDiskTools(DiskTools):
    """DiskTools backed by df, fallocate, sfdisk, losetup and mkfs"""

    def __init__(self, cmd_runner: CommandRunner):
        self.cmd_runner = cmd_runner

    def free_space_kb(self, mountpoint: Path) -> int:
        try:
            result = self.cmd_runner.run(
                ["df", "--output=avail", "--block-size=1K", f"{mountpoint}/"]
            )
        except subprocess.CalledProcessError as e:
            raise FreeSpaceError(f"Failed to read free space of {mountpoint}: {e}")

        try:
            return _last_line_int(result.stdout)
        except ValueError:
            raise FreeSpaceError(f"Could not read free space of {mountpoint} from: {result.stdout!r}")

    def allocate(self, path: Path, size_kb: int) -> None:
        try:
            self.cmd_runner.run(["fallocate", "-l", f"{size_kb}K", str(path)])
        except subprocess.CalledProcessError as e:
            raise AllocationError(f"Failed to allocate {size_kb}K for {path}: {e}")

    def write_partition_table(self, path: Path, script: str) -> None:
        try:
            self.cmd_runner.run(["sfdisk", str(path)], input=script)
        except subprocess.CalledProcessError as e:
            raise PartitioningError(f"Failed to create partition table on {path}: {e}")

    def _sfdisk_column(self, path: Path, column: str, *extra: str) -> int:
        result = self.cmd_runner.run(["sfdisk", "-l", "-o", column, "-q", *extra, str(path)])
        try:
            return _last_line_int(result.stdout)
        except ValueError:
            raise PartitioningError(
                f"Could not read partition {column.lower()} of {path} from: {result.stdout!r}"
            )

    def read_partition_geometry(self, path: Path) -> PartitionGeometry:
        try:
            return PartitionGeometry(
                size_bytes=self._sfdisk_column(path, "Size", "--bytes"),
                sectors=self._sfdisk_column(path, "Sectors"),
                start_sector=self._sfdisk_column(path, "Start"),
            )
        except subprocess.CalledProcessError as e:
            raise PartitioningError(f"Failed to read partition table of {path}: {e}")

    def attach_loop(self, path: Path, offset: int) -> str:
        try:
            result = self.cmd_runner.run(["losetup", "-o", str(offset), "-f", "--show", str(path)])
        except subprocess.CalledProcessError as e:
            raise LoopDeviceError(f"Failed to attach loop device for {path}: {e}")

        device = result.stdout.strip()
        if not device:
            raise LoopDeviceError(f"losetup did not report a loop device for {path}")
        return device

    def make_filesystem(self, device: str, label: str, use_exfat: bool) -> None:
        try:
            self.cmd_runner.run(mkfs_command(device, label, use_exfat))
        except subprocess.CalledProcessError as e:
            fs_name = "ExFAT" if use_exfat else "FAT32"
            raise FilesystemError(f"Failed to create {fs_name} filesystem on {device}: {e}")

    def detach_loop(self, device: str) -> None:
        try:
            self.cmd_runner.run(["losetup", "-d", device])
        except subprocess.CalledProcessError as e:
            raise LoopDeviceError(f"Failed to detach loop device {device}: {e}")

    def make_directory(self, path: Path, description: Optional[str] = None) -> None:
        create_directory(path, self.cmd_runner, description)

    def exists(self, path: Path) -> bool:
        if self.cmd_runner.simulating:
            simulated = self.cmd_runner.simulated_exists(str(path))
            if simulated is not None:
                return simulated
        return path.exists()

    def remove(self, path: Path) -> None:
        if self.cmd_runner.simulating:
            logger.info(f"Would remove: {path}")
            self.cmd_runner.record_removal(str(path))
            return

        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        logger.debug(f"Removed {path}")


class CommandSystemTools(SystemTools):
    """SystemTools backed by /proc, modprobe, apt and plain commands"""

    REMOUNT_RW = "/root/bin/remountfs_rw"

    def __init__(self, cmd_runner: CommandRunner):
        self.cmd_runner = cmd_runner

    def exfat_supported(self) -> bool:
        if self.cmd_runner.simulating:
            return self.cmd_runner.simulation_params.get("exfat_supported", True)

        # Built-in support, or a module that is not loaded yet and so
        # doesn't show up in /proc/filesystems
        try:
            with open(PROC_FILESYSTEMS, "r") as f:
                if any("exfat" in line for line in f):
                    return True
        except OSError as e:
            logger.debug(f"Could not read {PROC_FILESYSTEMS}: {e}")

        result = self.cmd_runner.run(["modprobe", "-n", "exfat"], check=False)
        return result.returncode == 0

    def has_command(self, name: str) -> bool:
        return shutil.which(name) is not None

    def install_package(self, package: str) -> bool:
        if os.path.exists(self.REMOUNT_RW):
            self.run_best_effort([self.REMOUNT_RW])

        result = self.cmd_runner.run(["apt-get", "install", "-y", package], check=False)
        if result.returncode != 0:
            logger.debug(f"apt-get install {package} failed: {result.stderr}")
            return False
        return True

    def run_best_effort(self, cmd: List[str]) -> bool:
        try:
            result = self.cmd_runner.run(cmd, check=False)
        except OSError as e:
            logger.warning(colorize(f"Could not run {' '.join(cmd)}: {e}",
                                    TermColors.WARNING, self.cmd_runner.colored_output))
            return False
        return result.returncode == 0
