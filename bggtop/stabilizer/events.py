"""Events sent by convergence workers to the orchestrator.

Every worker sends any number of note events followed by exactly one
terminal event (``Stable``, ``Fatal`` or ``Interrupted``).
"""

from dataclasses import dataclass

from bggtop.store.models import Game


@dataclass(frozen=True)
class NoteError:
    """A transient failure that was absorbed by backing off."""

    game_id: int
    error: Exception


@dataclass(frozen=True)
class NoteUserResolved:
    """A previously unknown rater was looked up and classified."""

    game_id: int
    rater_id: str
    trusted: bool


@dataclass(frozen=True)
class NoteGameProgress:
    """A page was folded and persisted."""

    game: Game


@dataclass(frozen=True)
class Stable:
    """The game has no more rater pages and is marked stable."""

    game: Game


@dataclass(frozen=True)
class Fatal:
    """The worker stopped on an unrecoverable error."""

    game_id: int
    error: BaseException


@dataclass(frozen=True)
class Interrupted:
    """The worker observed cancellation and stopped without writing."""

    game_id: int


NoteEvent = NoteError | NoteUserResolved | NoteGameProgress
TerminalEvent = Stable | Fatal | Interrupted
WorkerEvent = NoteEvent | TerminalEvent
ProgressEvent = NoteEvent | Stable
