"""mountmux: hot-reloaded mount table router for HTTP edges.

Public API:
    FstabRouter    : embeddable router: register handlers, tune reload, serve
    MountEntry     : one ``source -> mount point`` line of the fstab file
    SchemePolicy   : which source schemes are reverse-proxied
    FstabParseError: raised when the fstab file does not match its schema
"""
from mountmux.fstab.loader import FstabParseError, MountEntry
from mountmux.router import FstabRouter
from mountmux.routing.builder import SchemePolicy

__all__ = ["FstabParseError", "FstabRouter", "MountEntry", "SchemePolicy"]
