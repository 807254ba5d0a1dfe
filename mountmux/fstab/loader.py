"""Fstab loader for mountmux.

Reads the mapping file that declares which origin or local handler is exposed
at which mount point::

    { "Fstab": { "http://origin.example/": "/mnt/a", "worker": "/mnt/b" } }

The document is tried as JSON first and then as YAML, so both the JSON form
above (tab indentation included) and the equivalent YAML form are accepted.
Bytes that are not UTF-8 are a parse error like any other malformed content.

Failure contract:
  - the file cannot be opened or read  → ``OSError`` propagates unchanged
  - the content does not match schema  → ``FstabParseError``

The loader is stateless and never retries; keeping the live table on failure
is the reload scheduler's job.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass

import yaml

from mountmux.constants import FSTAB_KEY
from mountmux.utils.logger import get_logger

logger = get_logger(__name__)


class FstabParseError(ValueError):
    """The fstab file was readable but its content does not match the schema."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


# ─── MountEntry dataclass ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class MountEntry:
    """A single fstab line.

    Fields:
        source:      Origin URI (``scheme://host[/path][?query]``) or the bare
                     identity of a registered handler.
        mount_point: Absolute path prefix at which the source is exposed.
    """

    source: str
    mount_point: str


# ─── Loading ──────────────────────────────────────────────────────────────────


def load_fstab(path: str) -> list[MountEntry]:
    """Read and parse an fstab file.

    Entries are returned in file order. A source listed twice keeps the
    mount point of its last occurrence.

    Raises:
        OSError: The file could not be opened or read.
        FstabParseError: The content is not UTF-8 JSON or YAML, or is not a
            mapping holding an ``Fstab`` mapping of string to absolute path.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            text = fh.read()
    except UnicodeDecodeError as exc:
        raise FstabParseError(path, f"not valid UTF-8: {exc}") from exc

    raw = _decode_document(text, path)
    entries = _parse_fstab_raw(raw, path)
    logger.debug("Fstab loaded", path=path, count=len(entries))
    return entries


def source_mtime(path: str) -> float:
    """Return the fstab file's modification time (raises ``OSError``)."""
    return os.stat(path).st_mtime


# ─── Parsing helpers ──────────────────────────────────────────────────────────


def _decode_document(text: str, path: str) -> object:
    """JSON first (tabs are legal JSON whitespace but not YAML), then YAML."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise FstabParseError(path, f"not valid JSON or YAML: {exc}") from exc


def _parse_fstab_raw(raw: object, path: str) -> list[MountEntry]:
    """Validate a parsed document and turn its ``Fstab`` mapping into entries."""
    if not isinstance(raw, dict):
        raise FstabParseError(
            path, f"top level must be a mapping, got {type(raw).__name__}"
        )

    if FSTAB_KEY not in raw:
        raise FstabParseError(path, f"missing required '{FSTAB_KEY}' field")

    table = raw[FSTAB_KEY]
    if table is None:
        # "Fstab": null / empty YAML section: nothing mounted
        return []
    if not isinstance(table, dict):
        raise FstabParseError(
            path, f"'{FSTAB_KEY}' must be a mapping, got {type(table).__name__}"
        )

    entries: dict[str, MountEntry] = {}
    for source, mount_point in table.items():
        if not isinstance(source, str) or not source:
            raise FstabParseError(path, f"source must be a non-empty string: {source!r}")
        if not isinstance(mount_point, str):
            raise FstabParseError(
                path, f"mount point for {source!r} must be a string: {mount_point!r}"
            )
        if not mount_point.startswith("/"):
            raise FstabParseError(
                path, f"mount point for {source!r} must be absolute: {mount_point!r}"
            )
        entries[source] = MountEntry(source=source, mount_point=mount_point)

    return list(entries.values())
