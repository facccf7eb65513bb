"""
Drive provisioning module.

This module creates a single backing file: allocation, partitioning, filesystem
creation through a loop device, and the conventional mountpoint directory.
"""
import logging

from backingfiles.core.exceptions import LoopDeviceError, NotEnoughSpaceError
from backingfiles.core.partition import partition_image
from backingfiles.core.tools import DiskTools
from backingfiles.utils.format import kib_to_human_readable
from backingfiles.utils.types import DriveResult, DriveSpec, ProvisionConfig

logger = logging.getLogger('backingfiles')


def add_drive(
    drive: DriveSpec,
    size_kb: int,
    config: ProvisionConfig,
    tools: DiskTools,
    use_exfat: bool
) -> DriveResult:
    """
    Create, partition and format one backing file.

    An existing file is left untouched, whatever its contents: a file left
    behind by an interrupted run counts as provisioned too.

    Args:
        drive: The volume to provision
        size_kb: Size of the backing file in kilobytes
        config: Run configuration
        tools: DiskTools instance for disk operations
        use_exfat: Whether to format ExFAT rather than FAT32

    Returns:
        DriveResult describing what was done

    Raises:
        NotEnoughSpaceError: If the file must be created but size_kb is not positive
        AllocationError, PartitioningError, LoopDeviceError, FilesystemError:
            If one of the disk operations fails; nothing is rolled back
    """
    filename = config.backing_file(drive)

    if tools.exists(filename):
        logger.info(f"Backing file {filename} already exists, nothing to do. "
                    "To resize it, remove it and rerun setup")
        return DriveResult(name=drive.name, path=str(filename), size_kb=0, status="existing")

    if size_kb <= 0:
        raise NotEnoughSpaceError(f"No space left to create {filename}")

    logger.info(f"Allocating {size_kb}K ({kib_to_human_readable(size_kb)}) for {filename}...")
    tools.allocate(filename, size_kb)

    offset = partition_image(filename, use_exfat, tools)

    loop_device = tools.attach_loop(filename, offset)
    try:
        logger.info(f"Creating filesystem with label '{drive.label}'")
        tools.make_filesystem(loop_device, drive.label, use_exfat)
    except Exception:
        # The mkfs failure is what gets reported, not a failed detach after it
        try:
            tools.detach_loop(loop_device)
        except LoopDeviceError as e:
            logger.warning(f"Could not detach {loop_device} after failed mkfs: {e}")
        raise
    tools.detach_loop(loop_device)

    tools.make_directory(config.mount_root / drive.name, f"{drive.name} mountpoint")

    return DriveResult(name=drive.name, path=str(filename), size_kb=size_kb, status="created")
