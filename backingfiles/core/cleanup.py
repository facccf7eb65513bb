"""
Cleanup of previously provisioned backing files.

fallocate never shrinks an existing file, so resizing a drive means deleting
its backing file first. Deletion only happens when the confirmation policy
agrees.
"""
import logging
from pathlib import Path
from typing import List

from backingfiles.config import DRIVES
from backingfiles.core.exceptions import DeletionAborted
from backingfiles.core.tools import DiskTools, SystemTools
from backingfiles.utils.types import ConfirmationPolicy, ProvisionConfig

logger = logging.getLogger('backingfiles')

ARCHIVE_PROCESS = "archiveloop"
DISABLE_GADGET = "/root/bin/disable_gadget.sh"

CONFIRMATION_QUESTION = "Delete snapshots and recreate recording and music drives? (yes/cancel) "


def existing_backing_state(config: ProvisionConfig) -> List[Path]:
    """
    List the backing files and snapshot directory that already exist.

    Args:
        config: Run configuration

    Returns:
        Existing paths, backing files first
    """
    candidates = [config.backing_file(drive) for drive in DRIVES]
    candidates.append(config.snapshots_dir)
    return [path for path in candidates if path.exists()]


def stop_services(config: ProvisionConfig, system: SystemTools) -> None:
    """
    Stop everything that may hold the backing files open.

    Each step is best effort; failures are logged and ignored.
    """
    logger.info("Stopping all services")

    commands = [
        ["killall", ARCHIVE_PROCESS],
        [DISABLE_GADGET],
    ]
    commands.extend(["umount", "-d", str(config.mount_root / drive.name)] for drive in DRIVES)
    commands.extend(
        ["umount", "-d", str(snapshot_mount)]
        for snapshot_mount in sorted(config.snapshots_dir.glob("snap*/mnt"))
    )

    for cmd in commands:
        if not system.run_best_effort(cmd):
            logger.debug(f"Ignoring failure of: {' '.join(cmd)}")


def delete_backing_state(config: ProvisionConfig, tools: DiskTools) -> None:
    """Remove all three backing files and the snapshot directory."""
    logger.info(f"Deleting backing files at {config.mountpoint}")
    for drive in DRIVES:
        filename = config.backing_file(drive)
        if tools.exists(filename):
            tools.remove(filename)

    if config.snapshots_dir.exists():
        tools.remove(config.snapshots_dir)


def cleanup_existing(
    config: ProvisionConfig,
    tools: DiskTools,
    system: SystemTools,
    confirm: ConfirmationPolicy
) -> bool:
    """
    Handle backing state left by a previous run.

    Args:
        config: Run configuration
        tools: DiskTools instance for disk operations
        system: SystemTools instance for stopping services
        confirm: Callback asked before deleting; None never deletes

    Returns:
        True if existing state was deleted

    Raises:
        DeletionAborted: If confirm declines the deletion
    """
    existing = existing_backing_state(config)
    if not existing:
        return False

    logger.debug(f"Found existing backing state: {', '.join(str(p) for p in existing)}")

    if confirm is None:
        logger.warning(f"{config.mountpoint} already contains backing files. In case you want "
                       "to resize them, delete the affected files and rerun setup")
        return False

    if not confirm(CONFIRMATION_QUESTION):
        raise DeletionAborted("Deletion aborted")

    stop_services(config, system)
    delete_backing_state(config, tools)
    return True
