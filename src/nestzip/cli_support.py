"""Console helpers shared by nestzip CLI commands."""

from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
)

from nestzip.config.models import LoggingSettings
from nestzip.orchestrator import RunResult
from nestzip.progress import ProgressState

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: LoggingSettings, console: Console) -> None:
    """Install handlers on the ``nestzip`` logger according to ``settings``.

    Args:
        settings: Logging section of the loaded configuration.
        console: Console that receives rich-formatted records.
    """

    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    logger = logging.getLogger("nestzip")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(RichHandler(console=console, show_path=False, markup=False))

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(file_handler)


class ConsoleSink:
    """Render run notifications with a rich progress bar and log lines.

    Use as a context manager so the live progress display is started and
    stopped around the run.
    """

    def __init__(self, console: Console, *, show_log: bool = True, quiet: bool = False) -> None:
        self._console = console
        self._show_log = show_log and not quiet
        self._status = "Starting"
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            MofNCompleteColumn(),
            console=console,
            disable=quiet,
        )
        self._task: TaskID = self._progress.add_task(self._status, total=None)

    def __enter__(self) -> "ConsoleSink":
        self._progress.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._progress.stop()

    def progress(self, state: ProgressState) -> None:
        self._progress.update(self._task, completed=state.current, total=state.total)

    def status(self, text: str) -> None:
        self._status = text
        self._progress.update(self._task, description=escape(text))

    def operation(self, text: str) -> None:
        self._progress.update(self._task, description=escape(text or self._status))

    def log(self, message: str, timestamp: datetime) -> None:
        if not self._show_log:
            return
        self._progress.console.print(
            f"[dim][{timestamp.strftime('%H:%M:%S')}][/dim] {escape(message)}",
            highlight=False,
        )


def relative_label(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` using forward slashes when possible."""

    try:
        return path.relative_to(root).as_posix() or "."
    except ValueError:
        return path.as_posix()


def run_payload(result: RunResult) -> dict[str, Any]:
    """Return a JSON-ready description of a completed run.

    Args:
        result: Outcome returned by the orchestrator.

    Returns:
        dict[str, Any]: Payload mirroring the CLI summary.
    """

    root = result.root
    return {
        "context": {
            "root": root.as_posix(),
            "mode": result.mode,
            "archive": result.archive.as_posix() if result.archive else None,
        },
        "counts": {
            "archived": len(result.archived),
            "skipped": len(result.skipped),
            "missing": len(result.missing),
            "failed": len(result.failed),
            "scan_failures": len(result.scan_failures),
        },
        "progress": {
            "current": result.progress.current,
            "total": result.progress.total,
            "percent": result.progress.percent,
        },
        "archived": [relative_label(path, root) for path in result.archived],
        "skipped": [relative_label(path, root) for path in result.skipped],
        "failed": {
            relative_label(Path(path), root): message for path, message in result.failed.items()
        },
        "scan_failures": [
            {"path": failure.path.as_posix(), "reason": failure.reason}
            for failure in result.scan_failures
        ],
    }


__all__ = ["ConsoleSink", "configure_logging", "relative_label", "run_payload"]
