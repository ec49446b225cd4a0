"""Tests for progress sinks and the progress tracker."""

from __future__ import annotations

import logging

import pytest

from nestzip.progress import (
    NullSink,
    ProgressSink,
    ProgressState,
    ProgressTracker,
    RecordingSink,
    emit_log,
)


@pytest.fixture(autouse=True)
def _propagating_logger(monkeypatch: pytest.MonkeyPatch) -> None:
    # CLI commands detach the package logger from the root handler.
    monkeypatch.setattr(logging.getLogger("nestzip"), "propagate", True)


def test_progress_state_percent_handles_empty_total() -> None:
    assert ProgressState(0, 0).percent == 0.0
    assert ProgressState(1, 4).percent == pytest.approx(25.0)


def test_tracker_is_monotonic_and_clamped() -> None:
    sink = RecordingSink()
    tracker = ProgressTracker(sink, total=2)

    tracker.publish()
    tracker.advance()
    tracker.advance(0)
    tracker.advance(5)

    currents = [state.current for state in sink.channel("progress")]
    assert currents == [0, 1, 1, 2]
    assert tracker.state == ProgressState(2, 2)


def test_sinks_satisfy_protocol() -> None:
    assert isinstance(NullSink(), ProgressSink)
    assert isinstance(RecordingSink(), ProgressSink)


def test_emit_log_reaches_sink_and_logger(caplog: pytest.LogCaptureFixture) -> None:
    sink = RecordingSink()

    with caplog.at_level(logging.INFO, logger="nestzip.progress"):
        emit_log(sink, "Processing: A")

    assert sink.channel("log") == ["Processing: A"]
    assert "Processing: A" in caplog.text
