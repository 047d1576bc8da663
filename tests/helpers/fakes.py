"""In-memory collaborators for stabilization tests."""

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from bggtop.fetch.models import FetchErrorClass, RaterRating, SourceFetchError
from bggtop.store.errors import GameNotFoundError, OperationError
from bggtop.store.models import Game


def no_sleep(_: float) -> None:
    """Sleep replacement that returns immediately."""


def transient(message: str = "flaky") -> SourceFetchError:
    """A retryable remote failure."""
    return SourceFetchError(FetchErrorClass.HTTP_5XX, message, status_code=503)


class FakeSource:
    """Rating source backed by dictionaries.

    ``pages[game_id]`` lists the non-empty rater pages of a game; any page
    past the end is empty. ``failures`` queues exceptions raised by the next
    page fetches, ``average_failures`` by the next average lookups.
    """

    def __init__(
        self,
        pages: dict[int, list[list[tuple[str, float]]]] | None = None,
        averages: dict[str, float] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.averages = averages or {}
        self.failures: list[Exception] = []
        self.average_failures: list[Exception] = []
        self.page_calls: list[tuple[int, int]] = []
        self.average_calls: list[str] = []
        self.on_page: Callable[[int, int], None] | None = None
        self._lock = threading.Lock()

    def fetch_rater_page(self, game_id: int, page: int) -> list[RaterRating]:
        with self._lock:
            self.page_calls.append((game_id, page))
            if self.failures:
                raise self.failures.pop(0)
        if self.on_page is not None:
            self.on_page(game_id, page)
        game_pages = self.pages.get(game_id, [])
        if page > len(game_pages):
            return []
        return [RaterRating(rater_id=r, rating=v) for r, v in game_pages[page - 1]]

    def fetch_rater_average(self, rater_id: str) -> float:
        with self._lock:
            self.average_calls.append(rater_id)
            if self.average_failures:
                raise self.average_failures.pop(0)
        return self.averages[rater_id]


class FakeStore:
    """Thread-safe in-memory store."""

    def __init__(self, games: list[Game] | None = None) -> None:
        self.games: dict[int, Game] = {g.id: g for g in games or []}
        self.raters: dict[str, bool] = {}
        self.updates: list[Game] = []
        self.fail_update_on: set[int] = set()
        self._lock = threading.Lock()

    def get_unstable_games(self) -> list[Game]:
        with self._lock:
            return [g for g in self.games.values() if not g.stable]

    def check_rater_trust(self, name: str) -> bool | None:
        with self._lock:
            return self.raters.get(name)

    def insert_rater_if_absent(self, name: str, trusted: bool) -> bool:
        with self._lock:
            if name in self.raters:
                return False
            self.raters[name] = trusted
            return True

    def update_game(self, game: Game, stable: bool) -> None:
        with self._lock:
            if game.id in self.fail_update_on:
                raise OperationError("update_game", "disk I/O error")
            if game.id not in self.games:
                raise GameNotFoundError(game.id)
            stored = game.model_copy(update={"stable": stable})
            self.games[game.id] = stored
            self.updates.append(stored)


def factory(resource: object) -> Callable[[], object]:
    """Wrap a shared fake in a factory returning a context manager."""

    @contextmanager
    def _open() -> Iterator[object]:
        yield resource

    return _open
