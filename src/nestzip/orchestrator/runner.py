"""Bottom-up orchestration of scanning, ordering, and archiving."""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal

from nestzip.archive import ArchiveComposer, ArchiveTable
from nestzip.config.models import NestzipConfig
from nestzip.progress import NullSink, ProgressSink, ProgressState, ProgressTracker, emit_log
from nestzip.scanning import (
    DirectoryNode,
    DirectoryScanner,
    ManifestPolicy,
    ScanFailure,
    sort_deepest_first,
)

from .errors import InvalidInputError, RootCompositionError, RunCancelled

LOGGER = logging.getLogger(__name__)

RunMode = Literal["delete", "export"]


class RunPhase(str, Enum):
    """Lifecycle states of a bottom-up run."""

    IDLE = "idle"
    SCANNING = "scanning"
    SORTING = "sorting"
    PROCESSING = "processing"
    COMPOSING_ROOT = "composing_root"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class RunResult:
    """Outcome of one bottom-up run.

    Attributes:
        root: Absolute traversal root.
        mode: Run mode that was applied.
        archive: Top-level archive produced by the root pass, if any.
        archives: Directory to archive mapping accumulated during the run.
        archived: Directories archived as standalone units.
        skipped: Directories that did not qualify and were folded into an ancestor.
        missing: Directories that disappeared before they were reached.
        failed: Directories whose archival failed, mapped to the error text.
        scan_failures: Subtrees skipped during discovery.
        progress: Final progress snapshot.
    """

    root: Path
    mode: str
    archive: Path | None = None
    archives: dict[str, Path] = field(default_factory=dict)
    archived: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    missing: list[Path] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    scan_failures: list[ScanFailure] = field(default_factory=list)
    progress: ProgressState = field(default_factory=lambda: ProgressState(0, 0))

    @property
    def succeeded(self) -> bool:
        """Return True when no directory failed to archive."""
        return not self.failed


class BottomUpOrchestrator:
    """Archive a directory tree deepest-first.

    Each qualifying directory is archived after all of its descendants so its
    archive can embed theirs. In ``delete`` mode archives are written beside
    each directory and the directory is removed; in ``export`` mode the source
    tree is left untouched and intermediate archives live in a temporary
    workspace that is removed when the run ends.
    """

    def __init__(
        self,
        scanner: DirectoryScanner,
        policy: ManifestPolicy,
        composer: ArchiveComposer,
        sink: ProgressSink | None = None,
        *,
        mode: RunMode = "export",
        zip_root: bool = False,
        output: Path | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if mode not in ("delete", "export"):
            raise InvalidInputError(f"Unknown run mode: {mode!r}")
        self.scanner = scanner
        self.policy = policy
        self.composer = composer
        self.sink: ProgressSink = sink or NullSink()
        self.mode = mode
        self.zip_root = zip_root
        self.output = Path(output).expanduser().absolute() if output is not None else None
        self._cancel_event = cancel_event
        self._phase = RunPhase.IDLE

    @property
    def phase(self) -> RunPhase:
        return self._phase

    def run(self, root: Path | str) -> RunResult:
        """Execute the run for ``root`` and return its outcome.

        Raises:
            InvalidInputError: If ``root`` is not an existing directory or the
                mode requires an output path that was not given.
            RootCompositionError: If the top-level archive could not be written.
            RunCancelled: If cancellation was requested mid-run.
        """
        self._phase = RunPhase.IDLE
        root_path = self._validate(root)
        table = ArchiveTable(root=root_path)
        result = RunResult(root=root_path, mode=self.mode)
        workspace: Path | None = None
        terminal = RunPhase.DONE

        try:
            if self.mode == "export":
                workspace = Path(tempfile.mkdtemp(prefix="nestzip-"))
                LOGGER.debug("Created workspace %s", workspace)

            self._phase = RunPhase.SCANNING
            self.sink.status("Scanning folders...")
            emit_log(self.sink, f"Starting scan of: {root_path}", logger=LOGGER)
            scan = self.scanner.scan(root_path)
            result.scan_failures = list(scan.failures)

            self._phase = RunPhase.SORTING
            ordered = sort_deepest_first(scan.directories, root_path)
            emit_log(self.sink, f"Found {len(ordered)} subdirectories to process", logger=LOGGER)

            root_target = self._root_destination(root_path)
            tracker = ProgressTracker(self.sink, len(ordered) + (1 if root_target else 0))
            tracker.publish()

            self._phase = RunPhase.PROCESSING
            self.sink.status("Zipping folders...")
            for node in ordered:
                self._check_cancelled()
                self._process(node, root_path, workspace, table, tracker, result)

            self._phase = RunPhase.COMPOSING_ROOT
            self._check_cancelled()
            if root_target is not None:
                result.archive = self._compose_root(root_path, root_target, table)
                tracker.advance()
            result.progress = tracker.state
        except RunCancelled:
            terminal = RunPhase.CANCELLED
            emit_log(self.sink, "Run cancelled", logger=LOGGER, level=logging.WARNING)
            raise
        except BaseException:
            terminal = RunPhase.FAILED
            raise
        finally:
            result.archives = table.as_dict()
            self._phase = RunPhase.CLEANING_UP
            self._cleanup(workspace)
            self._phase = terminal

        self.sink.status("All folders processed successfully!")
        self.sink.operation("")
        return result

    # Internal helpers -------------------------------------------------

    def _validate(self, root: Path | str) -> Path:
        if root is None or str(root) == "":
            self._phase = RunPhase.FAILED
            raise InvalidInputError("Invalid folder path: no path given")
        root_path = Path(root).expanduser()
        if not root_path.is_dir():
            self._phase = RunPhase.FAILED
            raise InvalidInputError(f"Invalid folder path: {root_path}")
        if self.mode == "export" and self.output is None:
            self._phase = RunPhase.FAILED
            raise InvalidInputError("Export mode requires an output archive path.")
        resolved = root_path.resolve()
        if (
            self.mode == "delete"
            and self.zip_root
            and self.output is not None
            and self.output.resolve().is_relative_to(resolved)
        ):
            self._phase = RunPhase.FAILED
            raise InvalidInputError(
                f"Output archive {self.output} lies inside {resolved}, which is removed "
                "after archiving."
            )
        return resolved

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise RunCancelled("Run cancelled before completion.")

    def _process(
        self,
        node: DirectoryNode,
        root: Path,
        workspace: Path | None,
        table: ArchiveTable,
        tracker: ProgressTracker,
        result: RunResult,
    ) -> None:
        path = node.path
        if not node.exists:
            result.missing.append(path)
            tracker.advance()
            return

        if not self.policy.should_archive(path):
            LOGGER.debug("Not archiving %s on its own; markers missing", path)
            result.skipped.append(path)
            tracker.advance()
            return

        destination = self._child_destination(path, root, workspace)
        self.sink.operation(f"Zipping: {path}")
        emit_log(self.sink, f"Processing: {path}", logger=LOGGER)
        try:
            archive = self.composer.compose(path, destination, table)
            table.record(path, archive)
            if self.mode == "delete":
                _remove_directory(path)
        except Exception as exc:
            result.failed[str(path)] = str(exc)
            tracker.advance()
            emit_log(
                self.sink,
                f"✗ Error processing {path}: {exc}",
                logger=LOGGER,
                level=logging.ERROR,
            )
            return

        result.archived.append(path)
        tracker.advance()
        emit_log(self.sink, f"✓ Completed: {archive.name}", logger=LOGGER)

    def _child_destination(self, path: Path, root: Path, workspace: Path | None) -> Path:
        name = self.composer.archive_name(path)
        if workspace is None:
            return path.parent / name
        return workspace / path.parent.relative_to(root) / name

    def _root_destination(self, root: Path) -> Path | None:
        if self.output is not None:
            return self.output
        if self.mode == "delete" and self.zip_root:
            return root.parent / self.composer.archive_name(root)
        return None

    def _compose_root(self, root: Path, destination: Path, table: ArchiveTable) -> Path:
        self.sink.operation(f"Zipping root folder: {root}")
        emit_log(self.sink, f"Zipping root folder: {root}", logger=LOGGER)
        try:
            archive = self.composer.compose(root, destination, table)
            if self.mode == "delete" and self.zip_root:
                shutil.rmtree(root)
        except Exception as exc:
            emit_log(
                self.sink,
                f"✗ Error zipping root folder: {exc}",
                logger=LOGGER,
                level=logging.ERROR,
            )
            raise RootCompositionError(f"Could not archive {root}: {exc}") from exc
        emit_log(self.sink, f"✓ Root folder zipped: {archive.name}", logger=LOGGER)
        return archive

    def _cleanup(self, workspace: Path | None) -> None:
        if workspace is None:
            return
        try:
            shutil.rmtree(workspace)
        except OSError as exc:
            emit_log(
                self.sink,
                f"⚠ Could not remove workspace {workspace}: {exc}",
                logger=LOGGER,
                level=logging.WARNING,
            )


def _remove_directory(path: Path) -> None:
    if path.is_symlink():
        path.unlink()
    else:
        shutil.rmtree(path)


def build_orchestrator(
    config: NestzipConfig,
    *,
    sink: ProgressSink | None = None,
    output: Path | None = None,
) -> BottomUpOrchestrator:
    """Wire scanner, policy, and composer from configuration.

    Command line flags reach the run settings through the config overrides,
    so ``config.run`` is taken as final.
    """
    sink = sink or NullSink()
    return BottomUpOrchestrator(
        DirectoryScanner(follow_symlinks=config.scan.follow_symlinks, sink=sink),
        ManifestPolicy(config.markers, sink=sink),
        ArchiveComposer(
            extension=config.archive.extension,
            compression_level=config.archive.compression_level,
            follow_symlinks=config.scan.follow_symlinks,
            sink=sink,
        ),
        sink,
        mode=config.run.mode,
        zip_root=config.run.zip_root,
        output=output,
    )


__all__ = ["BottomUpOrchestrator", "RunMode", "RunPhase", "RunResult", "build_orchestrator"]
