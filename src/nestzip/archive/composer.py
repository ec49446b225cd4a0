"""Build one ZIP archive per directory, nesting children's archives."""

from __future__ import annotations

import logging
import os
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from nestzip.progress import NullSink, ProgressSink, emit_log

from .records import ArchiveTable

LOGGER = logging.getLogger(__name__)


@dataclass
class _Session:
    bundle: zipfile.ZipFile
    table: ArchiveTable
    destination: Path
    boundary: Path
    visited: set[str] = field(default_factory=set)
    # arcname -> real path of the file stored under it
    names: dict[str, str] = field(default_factory=dict)

    @property
    def real_destination(self) -> str:
        return os.path.realpath(self.destination)


class ArchiveComposer:
    """Write a directory into an archive.

    Files directly inside the source directory land at the archive's top
    level. Each subdirectory that already has an archive in the table is
    stored as a single opaque ``<name>.<ext>`` entry; any other subdirectory
    is expanded under ``<name>/`` with the same rule applied at every depth.
    """

    def __init__(
        self,
        *,
        extension: str = "zip",
        compression_level: int = 9,
        follow_symlinks: bool = False,
        sink: ProgressSink | None = None,
    ) -> None:
        self.extension = extension.lstrip(".")
        self.compression_level = compression_level
        self.follow_symlinks = follow_symlinks
        self.sink: ProgressSink = sink or NullSink()

    def archive_name(self, directory: Path) -> str:
        """Return the entry/file name used for the archive of ``directory``."""
        return f"{directory.name}.{self.extension}"

    def compose(self, source_dir: Path, destination: Path, table: ArchiveTable) -> Path:
        """Write ``source_dir`` to ``destination`` and return the archive path.

        An existing file at ``destination`` is replaced. A partially written
        archive is removed before the error propagates. Symlinked directories
        resolving inside ``table.root`` (or ``source_dir`` when the table has
        no root) are never expanded.
        """
        source_dir = Path(source_dir)
        destination = Path(destination).absolute()
        if destination.exists():
            emit_log(
                self.sink,
                f"⚠ Overwriting existing archive: {destination}",
                logger=LOGGER,
                level=logging.WARNING,
            )
            destination.unlink()
        destination.parent.mkdir(parents=True, exist_ok=True)
        boundary = Path(os.path.realpath(table.root if table.root is not None else source_dir))

        try:
            with zipfile.ZipFile(
                destination,
                mode="w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compression_level,
                strict_timestamps=False,
            ) as bundle:
                session = _Session(
                    bundle=bundle, table=table, destination=destination, boundary=boundary
                )
                session.visited.add(os.path.realpath(source_dir))
                count = self._add_directory(session, source_dir, "")
        except BaseException:
            destination.unlink(missing_ok=True)
            raise

        LOGGER.debug("Wrote %d entries from %s to %s", count, source_dir, destination)
        return destination

    def _write(self, session: _Session, path: Path, arcname: str) -> int:
        real = os.path.realpath(path)
        taken = session.names.get(arcname)
        if taken is not None:
            # The same archive reached twice (a folder left beside its own archive).
            if taken != real:
                emit_log(
                    self.sink,
                    f"⚠ Skipping {path}: entry {arcname} already holds {taken} "
                    f"in {session.destination.name}",
                    logger=LOGGER,
                    level=logging.WARNING,
                )
            return 0
        session.names[arcname] = real
        session.bundle.write(path, arcname=arcname)
        return 1

    def _add_directory(self, session: _Session, directory: Path, prefix: str) -> int:
        added = 0
        for entry in sorted(directory.iterdir(), key=lambda item: item.name):
            if entry.is_dir():
                added += self._add_subdirectory(session, entry, prefix)
            elif entry.is_file():
                if os.path.realpath(entry) == session.real_destination:
                    continue
                added += self._write(session, entry, prefix + entry.name)
        return added

    def _add_subdirectory(self, session: _Session, subdirectory: Path, prefix: str) -> int:
        archived = session.table.get(subdirectory)
        if archived is not None:
            if archived.is_file():
                return self._write(session, archived, prefix + self.archive_name(subdirectory))
            emit_log(
                self.sink,
                f"⚠ Archive for {subdirectory} is missing; adding its contents instead",
                logger=LOGGER,
                level=logging.WARNING,
            )

        if subdirectory.is_symlink():
            if not self.follow_symlinks:
                return 0
            real = os.path.realpath(subdirectory)
            if real in session.visited or Path(real).is_relative_to(session.boundary):
                return 0
            session.visited.add(real)

        nested_prefix = f"{prefix}{subdirectory.name}/"
        added = self._add_directory(session, subdirectory, nested_prefix)
        if added == 0:
            session.bundle.writestr(zipfile.ZipInfo(nested_prefix), b"")
            return 1
        return added


__all__ = ["ArchiveComposer"]
