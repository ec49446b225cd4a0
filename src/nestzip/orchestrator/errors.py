"""Errors raised by bottom-up runs."""

from __future__ import annotations


class NestzipError(Exception):
    """Base exception for archiving runs."""


class InvalidInputError(NestzipError, ValueError):
    """Raised before any work when the run arguments are unusable."""


class RootCompositionError(NestzipError):
    """Raised when the final top-level archive could not be produced."""

    @property
    def permission_denied(self) -> bool:
        """Return True when the underlying cause was an access denial."""
        return isinstance(self.__cause__, PermissionError)


class RunCancelled(NestzipError):
    """Raised when a run stops because cancellation was requested."""


__all__ = ["NestzipError", "InvalidInputError", "RootCompositionError", "RunCancelled"]
