"""Bottom-up run orchestration."""

from .errors import InvalidInputError, NestzipError, RootCompositionError, RunCancelled
from .runner import BottomUpOrchestrator, RunMode, RunPhase, RunResult, build_orchestrator

__all__ = [
    "BottomUpOrchestrator",
    "RunMode",
    "RunPhase",
    "RunResult",
    "build_orchestrator",
    "NestzipError",
    "InvalidInputError",
    "RootCompositionError",
    "RunCancelled",
]
