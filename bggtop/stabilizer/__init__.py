"""Stabilization engine: re-aggregates game ratings from trusted raters."""

from bggtop.stabilizer.average import RunningAverage
from bggtop.stabilizer.backoff import BackoffToken
from bggtop.stabilizer.errors import (
    BackoffExhaustedError,
    StabilizationError,
    StabilizationFailedError,
)
from bggtop.stabilizer.events import (
    Fatal,
    Interrupted,
    NoteError,
    NoteGameProgress,
    NoteUserResolved,
    Stable,
)
from bggtop.stabilizer.orchestrator import (
    StabilizationOrchestrator,
    StabilizationResult,
    stabilize,
)
from bggtop.stabilizer.state_machine import (
    WorkerState,
    WorkerStateMachine,
    WorkerStateTransitionError,
)
from bggtop.stabilizer.trust import UserTrustResolver, classify_trust
from bggtop.stabilizer.worker import GameConvergenceWorker


__all__ = [
    "BackoffExhaustedError",
    "BackoffToken",
    "Fatal",
    "GameConvergenceWorker",
    "Interrupted",
    "NoteError",
    "NoteGameProgress",
    "NoteUserResolved",
    "RunningAverage",
    "Stable",
    "StabilizationError",
    "StabilizationFailedError",
    "StabilizationOrchestrator",
    "StabilizationResult",
    "UserTrustResolver",
    "WorkerState",
    "WorkerStateMachine",
    "WorkerStateTransitionError",
    "classify_trust",
    "stabilize",
]
