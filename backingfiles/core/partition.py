"""
Backing file partitioning module.

This module writes the single-partition layout of a backing file using sfdisk
and locates the partition inside the image.
"""
import logging
from pathlib import Path

from backingfiles.core.exceptions import PartitioningError
from backingfiles.core.tools import DiskTools
from backingfiles.utils.types import PartitionGeometry

logger = logging.getLogger('backingfiles')

# MBR partition type codes understood by the USB host
PARTITION_TYPE_EXFAT = "7"
PARTITION_TYPE_FAT32 = "c"  # FAT32 with LBA


def partition_script(use_exfat: bool) -> str:
    """
    Build the sfdisk script for one partition spanning the whole image.

    Args:
        use_exfat: Whether the partition will hold ExFAT rather than FAT32

    Returns:
        sfdisk script text
    """
    part_type = PARTITION_TYPE_EXFAT if use_exfat else PARTITION_TYPE_FAT32
    return f"type={part_type}\n"


def partition_offset(geometry: PartitionGeometry) -> int:
    """
    Compute the byte offset of a partition from its geometry.

    The sector size is derived from the partition's size in bytes and in
    sectors rather than assumed.

    Raises:
        PartitioningError: If the geometry reports no sectors
    """
    if geometry.sectors <= 0:
        raise PartitioningError(f"Invalid partition geometry: {geometry}")

    sector_size = geometry.size_bytes // geometry.sectors
    return geometry.start_sector * sector_size


def partition_image(path: Path, use_exfat: bool, tools: DiskTools) -> int:
    """
    Partition a backing file and return the byte offset of its partition.

    Args:
        path: Backing file to partition
        use_exfat: Whether to mark the partition as ExFAT
        tools: DiskTools instance for disk operations

    Returns:
        Offset of the first partition in bytes

    Raises:
        PartitioningError: If partitioning fails
    """
    tools.write_partition_table(path, partition_script(use_exfat))

    geometry = tools.read_partition_geometry(path)
    offset = partition_offset(geometry)
    logger.debug(f"Partition of {path} starts at sector {geometry.start_sector} (byte {offset})")
    return offset
