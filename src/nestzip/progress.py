"""Progress reporting channels consumed by the archiving core.

The core pushes four kinds of notifications (progress, status, operation and
log lines) into a single :class:`ProgressSink`. Sinks never return values and
the core never waits on them; any thread hand-off needed to reach a UI is the
sink's responsibility.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProgressState:
    """Snapshot of run progress.

    Attributes:
        current: Units of work finished so far.
        total: Units of work planned at run start.
    """

    current: int
    total: int

    @property
    def percent(self) -> float:
        """Return completion as a percentage; 0 when nothing is planned."""
        if self.total <= 0:
            return 0.0
        return self.current / self.total * 100


@runtime_checkable
class ProgressSink(Protocol):
    """Receiver for run notifications."""

    def progress(self, state: ProgressState) -> None: ...

    def status(self, text: str) -> None: ...

    def operation(self, text: str) -> None: ...

    def log(self, message: str, timestamp: datetime) -> None: ...


class NullSink:
    """Sink that discards every notification."""

    def progress(self, state: ProgressState) -> None:
        return None

    def status(self, text: str) -> None:
        return None

    def operation(self, text: str) -> None:
        return None

    def log(self, message: str, timestamp: datetime) -> None:
        return None


@dataclass
class RecordingSink:
    """Sink that keeps every notification in call order.

    Attributes:
        events: ``(channel, payload)`` tuples in the order they arrived.
    """

    events: list[tuple[str, object]] = field(default_factory=list)

    def progress(self, state: ProgressState) -> None:
        self.events.append(("progress", state))

    def status(self, text: str) -> None:
        self.events.append(("status", text))

    def operation(self, text: str) -> None:
        self.events.append(("operation", text))

    def log(self, message: str, timestamp: datetime) -> None:
        self.events.append(("log", message))

    def channel(self, name: str) -> list[object]:
        """Return the payloads received on one channel."""
        return [payload for channel, payload in self.events if channel == name]


def emit_log(
    sink: ProgressSink,
    message: str,
    *,
    logger: logging.Logger = LOGGER,
    level: int = logging.INFO,
) -> None:
    """Send a timestamped line to the sink and mirror it to ``logger``."""
    logger.log(level, message)
    sink.log(message, datetime.now())


class ProgressTracker:
    """Monotonic progress counter bound to a sink.

    ``current`` only moves forward and is clamped to ``total``.
    """

    def __init__(self, sink: ProgressSink, total: int) -> None:
        self._sink = sink
        self._total = max(0, total)
        self._current = 0

    @property
    def state(self) -> ProgressState:
        return ProgressState(current=self._current, total=self._total)

    def advance(self, step: int = 1) -> ProgressState:
        """Move the counter forward and notify the sink."""
        if step > 0:
            self._current = min(self._total, self._current + step)
        state = self.state
        self._sink.progress(state)
        return state

    def publish(self) -> ProgressState:
        """Notify the sink of the current state without advancing."""
        state = self.state
        self._sink.progress(state)
        return state


__all__ = [
    "ProgressState",
    "ProgressSink",
    "NullSink",
    "RecordingSink",
    "ProgressTracker",
    "emit_log",
]
