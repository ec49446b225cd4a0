"""Depth computation and deepest-first ordering."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from .models import DirectoryNode


def directory_depth(path: Path, root: Path) -> int:
    """Return the number of path segments between ``root`` and ``path``.

    The root itself has depth 0 and its immediate children depth 1.

    Raises:
        ValueError: If ``path`` is not located under ``root``.
    """
    relative = Path(path).relative_to(Path(root))
    return len(relative.parts)


def sort_deepest_first(directories: Iterable[DirectoryNode], root: Path) -> list[DirectoryNode]:
    """Order directories so every descendant precedes its ancestors.

    Directories at equal depth keep their input order.
    """
    return sorted(directories, key=lambda node: directory_depth(node.path, root), reverse=True)


__all__ = ["directory_depth", "sort_deepest_first"]
