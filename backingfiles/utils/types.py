"""
Type definitions for backingfiles.

This module provides NamedTuple and TypedDict definitions and other type aliases
for better type checking throughout the codebase.
"""
from pathlib import Path
from typing import Callable, List, Literal, NamedTuple, Optional, TypedDict


class DriveSpec(NamedTuple):
    """A named volume backed by a file in the backing-files mountpoint"""
    name: str
    label: str
    filename: str


class ProvisionConfig(NamedTuple):
    """Immutable settings for one provisioning run"""
    cam_size: str
    music_size: str
    boombox_size: str
    mountpoint: Path
    use_exfat: bool
    reserve_kb: int = 10 * 1024
    mount_root: Path = Path("/mnt")
    min_remaining_kb: int = 1024

    def backing_file(self, drive: DriveSpec) -> Path:
        return self.mountpoint / drive.filename

    @property
    def snapshots_dir(self) -> Path:
        return self.mountpoint / "snapshots"


class PartitionGeometry(NamedTuple):
    """Geometry of the first partition of an image, as reported by sfdisk"""
    size_bytes: int
    sectors: int
    start_sector: int


DriveStatus = Literal["created", "existing", "skipped"]


class DriveResult(TypedDict):
    """Outcome of provisioning a single volume"""
    name: str
    path: str
    size_kb: int
    status: DriveStatus


# Asked before destroying existing backing files; None means never ask
ConfirmationPolicy = Optional[Callable[[str], bool]]

ProvisionResults = List[DriveResult]
