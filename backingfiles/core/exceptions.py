"""
Base exceptions for backingfiles.

This module defines the hierarchy of exceptions used by backingfiles.
"""

class BackingFilesError(Exception):
    """Base exception for backingfiles errors"""
    pass


class UnsupportedSizeError(BackingFilesError):
    """Exception raised when a size specification cannot be parsed"""
    pass


class NotEnoughSpaceError(BackingFilesError):
    """Exception raised when there's no space left for a backing file"""
    pass


class AllocationError(BackingFilesError):
    """Exception raised when a backing file cannot be allocated"""
    pass


class PartitioningError(BackingFilesError):
    """Exception raised when there's an error in partitioning"""
    pass


class LoopDeviceError(BackingFilesError):
    """Exception raised when a loop device cannot be attached or detached"""
    pass


class FilesystemError(BackingFilesError):
    """Exception raised when there's an error in filesystem creation"""
    pass


class DeletionAborted(BackingFilesError):
    """Exception raised when the user declines deleting existing backing files"""
    pass


class FreeSpaceError(BackingFilesError):
    """Exception raised when the free space of the backing files device cannot be read"""
    pass
