"""
Size resolution module.

This module turns human readable size requests into kilobyte counts bounded by
the free space of the backing-files mountpoint.
"""
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from backingfiles.core.exceptions import UnsupportedSizeError

if TYPE_CHECKING:
    from backingfiles.core.tools import DiskTools

logger = logging.getLogger('backingfiles')

# Constants
DEFAULT_RESERVE_KB = 10 * 1024  # Kept free for filesystem bookkeeping

_ABSOLUTE_RE = re.compile(r"(\d+)([KMG])B?")
_PERCENT_RE = re.compile(r"(\d+)%")

# Powers of two, not the powers of ten used to market storage
_UNIT_BYTES = {
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
}


def is_percent(spec: str) -> bool:
    """Return True if the size specification is a percentage of free space."""
    return _PERCENT_RE.fullmatch(spec) is not None


def dehumanize(value: str) -> int:
    """
    Convert an absolute size specification to bytes.

    Args:
        value: Size specification (e.g., "10G", "512MB", "64K")

    Returns:
        Size in bytes

    Raises:
        UnsupportedSizeError: If the value is not <int>(K|M|G)B?
    """
    match = _ABSOLUTE_RE.fullmatch(value)
    if not match:
        raise UnsupportedSizeError(f"value {value} not supported")

    number, unit = match.groups()
    return int(number) * _UNIT_BYTES[unit]


def validate_size_spec(spec: str) -> None:
    """
    Check that a size specification can be resolved.

    Raises:
        UnsupportedSizeError: If the specification is neither a percentage,
            an absolute size nor zero
    """
    if spec == "0" or is_percent(spec):
        return
    dehumanize(spec)


def resolve_size(spec: str, available_kb: int) -> int:
    """
    Resolve a size specification against the available space.

    Requests larger than the available space are clamped to it rather than
    rejected, so asking for too much means taking everything that's left.

    Args:
        spec: Size specification ("50%", "10GB", "0", ...)
        available_kb: Available space in kilobytes, may be negative

    Returns:
        Size in kilobytes, between 0 and max(available_kb, 0)

    Raises:
        UnsupportedSizeError: If the specification cannot be parsed
    """
    validate_size_spec(spec)

    if available_kb < 0:
        return 0

    if spec == "0":
        size_kb = 0
    elif is_percent(spec):
        percent = int(spec.rstrip("%"))
        size_kb = available_kb * percent // 100
    else:
        size_kb = dehumanize(spec) // 1024

    if size_kb > available_kb:
        logger.debug(f"Requested {spec} exceeds available {available_kb}K, clamping")
        size_kb = available_kb

    return size_kb


def available_space(mountpoint: Path, tools: "DiskTools", reserve_kb: int = DEFAULT_RESERVE_KB) -> int:
    """
    Compute the space usable for backing files on a mountpoint.

    Args:
        mountpoint: Backing-files mountpoint
        tools: DiskTools instance used to query free space
        reserve_kb: Space to keep free, in kilobytes

    Returns:
        Free kilobytes minus the reserve (may be negative)
    """
    return tools.free_space_kb(mountpoint) - reserve_kb


def calc_size(spec: str, mountpoint: Path, tools: "DiskTools", reserve_kb: int = DEFAULT_RESERVE_KB) -> int:
    """
    Resolve a size specification against the current free space of a mountpoint.

    Args:
        spec: Size specification
        mountpoint: Backing-files mountpoint
        tools: DiskTools instance used to query free space
        reserve_kb: Space to keep free, in kilobytes

    Returns:
        Size in kilobytes
    """
    return resolve_size(spec, available_space(mountpoint, tools, reserve_kb))
