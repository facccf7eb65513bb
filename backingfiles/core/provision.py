"""
Backing files orchestration module.

This module sequences cleanup, filesystem selection, size resolution and the
provisioning of the cam, music and boombox drives, in that order.
"""
import logging

from backingfiles.config import BOOMBOX_DRIVE, CAM_DRIVE, MUSIC_DRIVE
from backingfiles.core.cleanup import cleanup_existing
from backingfiles.core.drive import add_drive
from backingfiles.core.filesystem import ensure_vfat_tools, resolve_use_exfat
from backingfiles.core.size import available_space, calc_size, validate_size_spec
from backingfiles.core.tools import DiskTools, SystemTools
from backingfiles.utils.types import (
    ConfirmationPolicy, DriveResult, DriveSpec, ProvisionConfig, ProvisionResults
)

logger = logging.getLogger('backingfiles')

WHOLE_DEVICE = "100%"


def _skipped(drive: DriveSpec, config: ProvisionConfig) -> DriveResult:
    return DriveResult(name=drive.name, path=str(config.backing_file(drive)), size_kb=0, status="skipped")


def _add_if_room(
    drive: DriveSpec,
    size_kb: int,
    remaining_kb: int,
    config: ProvisionConfig,
    tools: DiskTools,
    use_exfat: bool
) -> DriveResult:
    """Provision a later drive only when enough space remains and it was asked for."""
    if remaining_kb < config.min_remaining_kb or size_kb <= 0:
        logger.info(f"Skipping {drive.name} drive (size {size_kb}K, remaining {remaining_kb}K)")
        return _skipped(drive, config)

    result = add_drive(drive, size_kb, config, tools, use_exfat)
    logger.info(f"Created {drive.name} backing file: {result['path']}")
    return result


def provision_backing_files(
    config: ProvisionConfig,
    tools: DiskTools,
    system: SystemTools,
    confirm: ConfirmationPolicy = None
) -> ProvisionResults:
    """
    Provision the cam, music and boombox backing files.

    Sizes are resolved against the free space before anything is created.
    After each drive the remaining space is measured again and the next
    drive is clamped to it; a drive is skipped when less than
    config.min_remaining_kb remains.

    Args:
        config: Run configuration
        tools: DiskTools instance for disk operations
        system: SystemTools instance for host queries
        confirm: Callback asked before deleting existing backing files

    Returns:
        One DriveResult per drive, in provisioning order

    Raises:
        UnsupportedSizeError: If any size specification is invalid, before
            any change is made
        DeletionAborted: If deletion of existing backing files was declined
        BackingFilesError: If provisioning a drive fails
    """
    logger.info("Starting")
    logger.info(f"cam: {config.cam_size}, music: {config.music_size}, boombox: {config.boombox_size} "
                f"mountpoint: {config.mountpoint}, exfat: {str(config.use_exfat).lower()}")

    for spec in (config.cam_size, config.music_size, config.boombox_size):
        validate_size_spec(spec)

    cleanup_existing(config, tools, system, confirm)

    use_exfat = resolve_use_exfat(config.use_exfat, system)
    ensure_vfat_tools(system)

    cam_kb = calc_size(config.cam_size, config.mountpoint, tools, config.reserve_kb)
    music_kb = calc_size(config.music_size, config.mountpoint, tools, config.reserve_kb)
    boombox_kb = calc_size(config.boombox_size, config.mountpoint, tools, config.reserve_kb)

    results: ProvisionResults = []

    results.append(add_drive(CAM_DRIVE, cam_kb, config, tools, use_exfat))
    logger.info("Created camera backing file")

    remaining_kb = available_space(config.mountpoint, tools, config.reserve_kb)
    if config.cam_size == WHOLE_DEVICE:
        music_kb = 0
    elif music_kb > remaining_kb:
        music_kb = remaining_kb
    results.append(_add_if_room(MUSIC_DRIVE, music_kb, remaining_kb, config, tools, use_exfat))

    remaining_kb = available_space(config.mountpoint, tools, config.reserve_kb)
    if boombox_kb > remaining_kb:
        boombox_kb = remaining_kb
    results.append(_add_if_room(BOOMBOX_DRIVE, boombox_kb, remaining_kb, config, tools, use_exfat))

    logger.info("Done")
    return results
