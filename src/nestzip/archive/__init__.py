"""Archive composition and the run-scoped archive table."""

from .composer import ArchiveComposer
from .records import ArchiveTable, normalize_key

__all__ = ["ArchiveComposer", "ArchiveTable", "normalize_key"]
