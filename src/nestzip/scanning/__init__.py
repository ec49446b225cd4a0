"""Directory discovery, ordering, and archival selection."""

from .depth import directory_depth, sort_deepest_first
from .discovery import DirectoryScanner
from .manifest import ManifestPolicy
from .models import DirectoryNode, ScanFailure, ScanResult

__all__ = [
    "DirectoryScanner",
    "DirectoryNode",
    "ManifestPolicy",
    "ScanFailure",
    "ScanResult",
    "directory_depth",
    "sort_deepest_first",
]
