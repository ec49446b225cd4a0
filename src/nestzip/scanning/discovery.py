"""Recursive directory discovery."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from nestzip.progress import NullSink, ProgressSink, emit_log

from .models import DirectoryNode, ScanFailure, ScanResult

LOGGER = logging.getLogger(__name__)


class DirectoryScanner:
    """Enumerate every descendant directory of a root.

    Unreadable directories do not abort the scan: the subtree below them is
    skipped, one warning is emitted per failure, and the failure is recorded
    on the returned :class:`ScanResult`. Symlinked directories are only
    followed when ``follow_symlinks`` is set and they point outside the root.
    """

    def __init__(
        self,
        *,
        follow_symlinks: bool = False,
        sink: ProgressSink | None = None,
    ) -> None:
        self.follow_symlinks = follow_symlinks
        self.sink: ProgressSink = sink or NullSink()

    def scan(self, root: Path) -> ScanResult:
        """Return all directories below ``root`` (the root itself excluded)."""
        root = root.expanduser().resolve()
        result = ScanResult(root=root)
        visited = {os.path.realpath(root)}
        self._walk(root, result, visited)
        return result

    def _walk(self, directory: Path, result: ScanResult, visited: set[str]) -> None:
        try:
            children = sorted(
                (entry for entry in directory.iterdir() if entry.is_dir()),
                key=lambda entry: entry.name,
            )
        except PermissionError as exc:
            self._record_failure(result, directory, exc, permission_denied=True)
            return
        except OSError as exc:
            self._record_failure(result, directory, exc, permission_denied=False)
            return

        for child in children:
            if child.is_symlink():
                if not self.follow_symlinks:
                    continue
                # Links back into the tree would be archived twice.
                real = os.path.realpath(child)
                if real in visited or Path(real).is_relative_to(result.root):
                    continue
                visited.add(real)
            result.directories.append(DirectoryNode(path=child))
            self._walk(child, result, visited)

    def _record_failure(
        self,
        result: ScanResult,
        directory: Path,
        exc: OSError,
        *,
        permission_denied: bool,
    ) -> None:
        reason = exc.strerror or str(exc)
        result.failures.append(
            ScanFailure(path=directory, reason=reason, permission_denied=permission_denied)
        )
        if permission_denied:
            message = f"⚠ Access denied: {directory}"
        else:
            message = f"⚠ Error scanning {directory}: {reason}"
        emit_log(self.sink, message, logger=LOGGER, level=logging.WARNING)


__all__ = ["DirectoryScanner"]
