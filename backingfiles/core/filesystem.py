"""
Filesystem selection and creation module.

This module builds the mkfs command lines and decides whether ExFAT can be used
on this host, installing the userspace tools when needed.
"""
import logging
from typing import List, TYPE_CHECKING

from backingfiles.core.exceptions import FilesystemError

if TYPE_CHECKING:
    from backingfiles.core.tools import SystemTools

logger = logging.getLogger('backingfiles')

EXFAT_PACKAGE = "exfatprogs"
VFAT_PACKAGE = "dosfstools"


def mkfs_command(device: str, label: str, use_exfat: bool) -> List[str]:
    """
    Build the command that creates the filesystem on a loop device.

    Args:
        device: Device path to create filesystem on
        label: Volume label
        use_exfat: Whether to create ExFAT rather than FAT32

    Returns:
        Command as list of strings
    """
    if use_exfat:
        return ["mkfs.exfat", device, "-L", label]
    return ["mkfs.vfat", device, "-F", "32", "-n", label]


def resolve_use_exfat(requested: bool, system: "SystemTools") -> bool:
    """
    Decide whether ExFAT will actually be used.

    ExFAT needs kernel support and the exfatprogs tools. When the kernel
    supports it but the tools are missing they are installed; the choice falls
    back to FAT32 whenever either is unavailable.

    Args:
        requested: Whether ExFAT was requested
        system: SystemTools instance for host queries

    Returns:
        True if the backing files will be formatted ExFAT
    """
    if not system.exfat_supported():
        if requested:
            logger.info("Kernel does not support ExFAT FS. Reverting to FAT32.")
        return False

    if not system.has_command("mkfs.exfat"):
        logger.info(f"Installing {EXFAT_PACKAGE}")
        if not system.install_package(EXFAT_PACKAGE):
            logger.warning(f"Kernel supports ExFAT, but {EXFAT_PACKAGE} package could not be installed")
            if requested:
                logger.warning("Reverting to FAT32")
            return False

    return requested


def ensure_vfat_tools(system: "SystemTools") -> None:
    """
    Make sure mkfs.vfat is available, since some distros don't include it.

    Raises:
        FilesystemError: If dosfstools cannot be installed
    """
    if system.has_command("mkfs.vfat"):
        return

    logger.info(f"Installing {VFAT_PACKAGE}")
    if not system.install_package(VFAT_PACKAGE):
        raise FilesystemError(f"mkfs.vfat is missing and {VFAT_PACKAGE} could not be installed")
