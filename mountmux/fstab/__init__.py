"""Fstab file parsing.

Public API:
    MountEntry     : one ``source -> mount point`` mapping
    FstabParseError: content does not match the fstab schema
    load_fstab     : read and parse an fstab file
"""
from mountmux.fstab.loader import FstabParseError, MountEntry, load_fstab, source_mtime

__all__ = ["FstabParseError", "MountEntry", "load_fstab", "source_mtime"]
