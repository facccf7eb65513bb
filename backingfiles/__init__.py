"""
backingfiles - Backing file provisioning for USB mass-storage gadgets

This package provides tools for creating fixed-size disk image files on a
storage device, partitioning them and formatting them FAT32 or ExFAT.
"""

__version__ = "0.1.0"
