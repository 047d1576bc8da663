"""Collaborator interfaces of the stabilization engine.

``BggClient`` and ``StateStore`` satisfy these; tests substitute in-memory
fakes.
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Protocol

from bggtop.fetch.models import RaterRating
from bggtop.store.models import Game


class RatingSource(Protocol):
    """Remote source of rater pages and rater averages."""

    def fetch_rater_page(self, game_id: int, page: int) -> list[RaterRating]:
        """Fetch one page of ratings; empty once past the last page."""
        ...

    def fetch_rater_average(self, rater_id: str) -> float:
        """Fetch a rater's average rating across all games."""
        ...


class StabilizationStore(Protocol):
    """Persistence used by the engine."""

    def get_unstable_games(self) -> list[Game]:
        """Games still to be balanced."""
        ...

    def check_rater_trust(self, name: str) -> bool | None:
        """Stored trust flag, or None if unseen."""
        ...

    def insert_rater_if_absent(self, name: str, trusted: bool) -> bool:
        """Store a trust flag unless one exists."""
        ...

    def update_game(self, game: Game, stable: bool) -> None:
        """Persist a game's progress."""
        ...


StoreFactory = Callable[[], AbstractContextManager[StabilizationStore]]
SourceFactory = Callable[[], AbstractContextManager[RatingSource]]
