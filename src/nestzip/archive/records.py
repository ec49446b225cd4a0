"""Run-scoped table of directories that already have an archive."""

from __future__ import annotations

import os
from pathlib import Path


def normalize_key(path: Path | str) -> str:
    """Return the absolute, separator-normalized form used as a table key."""
    return os.path.normcase(os.path.abspath(os.fspath(path)))


class ArchiveTable:
    """Mapping from source directory to the archive produced for it.

    Entries are only ever added. A directory is present if and only if it was
    selected for archival and its archive was written successfully. ``root``
    is the top of the tree the run covers, when there is one.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = Path(root) if root is not None else None
        self._entries: dict[str, Path] = {}

    def record(self, directory: Path | str, archive: Path) -> None:
        self._entries[normalize_key(directory)] = Path(archive)

    def get(self, directory: Path | str) -> Path | None:
        return self._entries.get(normalize_key(directory))

    def as_dict(self) -> dict[str, Path]:
        """Return a copy of the table keyed by normalized directory path."""
        return dict(self._entries)


__all__ = ["ArchiveTable", "normalize_key"]
