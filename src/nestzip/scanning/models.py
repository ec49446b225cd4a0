"""Data structures produced by directory discovery."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class DirectoryNode:
    """A live view over a directory on disk.

    Attributes:
        path: Absolute path of the directory.
    """

    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def parent(self) -> Path:
        return self.path.parent

    @property
    def exists(self) -> bool:
        """Re-check the filesystem; the tree may change during a run."""
        return self.path.is_dir()


@dataclass(frozen=True, slots=True)
class ScanFailure:
    """A directory whose contents could not be enumerated.

    Attributes:
        path: Directory that failed.
        reason: Human-readable error text.
        permission_denied: Whether the failure was an access denial.
    """

    path: Path
    reason: str
    permission_denied: bool = False


@dataclass(slots=True)
class ScanResult:
    """Outcome of a recursive scan.

    Attributes:
        root: Absolute traversal root.
        directories: Descendant directories in discovery order.
        failures: Subtrees skipped because they could not be read.
    """

    root: Path
    directories: list[DirectoryNode] = field(default_factory=list)
    failures: list[ScanFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """Return True when at least one subtree was skipped."""
        return bool(self.failures)


__all__ = ["DirectoryNode", "ScanFailure", "ScanResult"]
