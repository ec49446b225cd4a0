"""Marker-file policy deciding which directories become standalone archives."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from nestzip.config.models import MarkerSpec
from nestzip.progress import NullSink, ProgressSink, emit_log

LOGGER = logging.getLogger(__name__)


class ManifestPolicy:
    """Qualify a directory when every configured marker file is present.

    Each marker matches case-insensitively on its canonical name or its
    alternate spelling. With no markers configured every directory qualifies.
    """

    def __init__(
        self,
        markers: Iterable[MarkerSpec] = (),
        *,
        sink: ProgressSink | None = None,
    ) -> None:
        self.markers = list(markers)
        self.sink: ProgressSink = sink or NullSink()

    def should_archive(self, directory: Path) -> bool:
        """Return whether ``directory`` is archived as its own unit.

        Errors while listing the directory make it not qualify.
        """
        if not self.markers:
            return True
        try:
            present = {entry.name.lower() for entry in Path(directory).iterdir() if entry.is_file()}
        except OSError as exc:
            emit_log(
                self.sink,
                f"⚠ Could not check markers in {directory}: {exc.strerror or exc}",
                logger=LOGGER,
                level=logging.WARNING,
            )
            return False
        return all(marker.names() & present for marker in self.markers)


__all__ = ["ManifestPolicy", "MarkerSpec"]
