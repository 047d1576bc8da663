"""Tests for GameConvergenceWorker."""

import threading

import pytest

from bggtop.config.schemas import AppConfig
from bggtop.stabilizer.errors import BackoffExhaustedError
from bggtop.stabilizer.events import (
    Fatal,
    Interrupted,
    NoteError,
    NoteGameProgress,
    NoteUserResolved,
    Stable,
    WorkerEvent,
)
from bggtop.stabilizer.state_machine import WorkerState
from bggtop.stabilizer.worker import GameConvergenceWorker
from bggtop.store.errors import ConnectionError as StoreConnectionError
from bggtop.store.errors import OperationError
from bggtop.store.models import Game
from tests.helpers.fakes import FakeSource, FakeStore, factory, no_sleep, transient


def make_worker(
    game: Game,
    store: FakeStore,
    source: FakeSource,
    config: AppConfig | None = None,
    cancel_event: threading.Event | None = None,
    sleep: object = no_sleep,
) -> tuple[GameConvergenceWorker, list[WorkerEvent]]:
    """Build a worker wired to fakes, collecting its events."""
    events: list[WorkerEvent] = []
    worker = GameConvergenceWorker(
        game=game,
        config=config or AppConfig(delay_ms=0),
        cancel_event=cancel_event or threading.Event(),
        emit=events.append,
        store_factory=factory(store),  # type: ignore[arg-type]
        source_factory=factory(source),  # type: ignore[arg-type]
        run_id="test-run",
        sleep=sleep,  # type: ignore[arg-type]
    )
    return worker, events


class TestConvergence:
    """Tests for the happy path."""

    def test_example_game(self) -> None:
        """One trusted and one untrusted rater over a single page."""
        game = Game(id=42, name="Example")
        store = FakeStore([game])
        source = FakeSource(
            pages={42: [[("alice", 7.5), ("bob", 9.9)]]},
            averages={"alice": 6.0, "bob": 9.5},
        )
        worker, events = make_worker(game, store, source)

        terminal = worker.run()

        first, final = store.updates
        assert (first.page, first.votes, first.rating, first.stable) == (2, 1, 7.5, False)
        assert (final.page, final.votes, final.rating, final.stable) == (3, 1, 7.5, True)
        assert isinstance(terminal, Stable)
        assert terminal.game == final
        assert events == [
            NoteUserResolved(game_id=42, rater_id="alice", trusted=True),
            NoteUserResolved(game_id=42, rater_id="bob", trusted=False),
            NoteGameProgress(game=first),
            Stable(game=final),
        ]
        assert store.raters == {"alice": True, "bob": False}
        assert worker.state == WorkerState.STABLE

    def test_converges_after_all_pages(self) -> None:
        """Page ends past the empty page and votes count every trusted rating."""
        game = Game(id=1, name="Long")
        pages = [
            [("a", 6.0), ("b", 8.0)],
            [("c", 10.0), ("a", 7.0)],
            [("d", 5.0)],
        ]
        source = FakeSource(
            pages={1: pages},
            averages={"a": 6.5, "b": 7.0, "c": 8.5, "d": 3.0},
        )
        store = FakeStore([game])
        worker, events = make_worker(game, store, source)

        terminal = worker.run()

        assert isinstance(terminal, Stable)
        assert terminal.game.page == len(pages) + 2
        assert terminal.game.stable
        assert terminal.game.votes == 4
        assert terminal.game.rating == pytest.approx((6.0 + 8.0 + 7.0 + 5.0) / 4)
        assert sum(isinstance(e, NoteGameProgress) for e in events) == 3
        assert isinstance(events[-1], Stable)

    def test_known_raters_need_no_lookup(self) -> None:
        """Stored trust flags are reused."""
        game = Game(id=1, name="Cached")
        store = FakeStore([game])
        store.raters.update({"a": True, "b": False})
        source = FakeSource(pages={1: [[("a", 9.0), ("b", 1.0)]]})
        worker, events = make_worker(game, store, source)

        terminal = worker.run()

        assert isinstance(terminal, Stable)
        assert terminal.game.votes == 1
        assert terminal.game.rating == 9.0
        assert source.average_calls == []
        assert not any(isinstance(e, NoteUserResolved) for e in events)

    def test_resumes_from_persisted_page(self) -> None:
        """A partially balanced game continues at its stored page."""
        game = Game(id=5, name="Resumed", page=3, votes=7, rating=6.0)
        source = FakeSource(
            pages={5: [[("old", 1.0)], [("old", 1.0)], [("x", 8.0)]]},
            averages={"x": 5.0, "old": 5.0},
        )
        store = FakeStore([game])
        worker, _ = make_worker(game, store, source)

        terminal = worker.run()

        assert source.page_calls[0] == (5, 3)
        assert "old" not in source.average_calls
        assert isinstance(terminal, Stable)
        assert terminal.game.votes == 8
        assert terminal.game.rating == pytest.approx((6.0 * 7 + 8.0) / 8)
        assert terminal.game.page == 5


class TestTransientFailures:
    """Tests for backoff on remote failures."""

    def test_fetch_failure_retries_same_page(self) -> None:
        """A failed page fetch is retried without advancing."""
        game = Game(id=1, name="Flaky")
        source = FakeSource(pages={1: [[("a", 7.0)]]}, averages={"a": 5.0})
        source.failures.extend([transient(), transient()])
        store = FakeStore([game])
        worker, events = make_worker(game, store, source, AppConfig(attempts=5, delay_ms=0))

        terminal = worker.run()

        assert isinstance(terminal, Stable)
        assert source.page_calls[:3] == [(1, 1), (1, 1), (1, 1)]
        assert sum(isinstance(e, NoteError) for e in events) == 2
        assert terminal.game.votes == 1

    def test_delay_follows_token(self) -> None:
        """Sleep grows by one step per failure."""
        game = Game(id=1, name="Slow")
        source = FakeSource()
        source.failures.extend([transient(), transient()])
        sleeps: list[float] = []
        worker, _ = make_worker(
            game,
            FakeStore([game]),
            source,
            AppConfig(attempts=5, delay_ms=100),
            sleep=sleeps.append,
        )

        worker.run()

        assert sleeps == pytest.approx([0.0, 0.1, 0.2])

    def test_new_raters_ease_token(self) -> None:
        """Successful rater lookups pay back earlier failures."""
        game = Game(id=1, name="Recovering")
        source = FakeSource(pages={1: [[("a", 7.0), ("b", 6.0)]]}, averages={"a": 5.0, "b": 5.0})
        source.failures.extend([transient(), transient()])
        worker, _ = make_worker(game, FakeStore([game]), source, AppConfig(attempts=3, delay_ms=0))

        terminal = worker.run()

        assert isinstance(terminal, Stable)
        assert worker.token.attempt == 0

    def test_exhausted_backoff_is_fatal(self) -> None:
        """The worker gives up after `attempts` straight failures."""
        game = Game(id=9, name="Down")
        source = FakeSource()
        source.failures.extend([transient()] * 3)
        store = FakeStore([game])
        worker, events = make_worker(game, store, source, AppConfig(attempts=3, delay_ms=0))

        terminal = worker.run()

        assert isinstance(terminal, Fatal)
        assert isinstance(terminal.error, BackoffExhaustedError)
        assert terminal.error.game_id == 9
        assert len(source.page_calls) == 3
        assert store.updates == []
        assert events[-1] is terminal

    def test_rater_failure_commits_nothing(self) -> None:
        """A failed lookup discards the page and refetches it."""
        game = Game(id=1, name="Partial")
        source = FakeSource(pages={1: [[("a", 7.0), ("b", 9.0)]]}, averages={"a": 5.0, "b": 5.0})
        source.average_failures.append(transient())
        store = FakeStore([game])
        worker, events = make_worker(game, store, source)

        terminal = worker.run()

        assert source.page_calls[:2] == [(1, 1), (1, 1)]
        assert isinstance(events[0], NoteError)
        assert isinstance(terminal, Stable)
        assert terminal.game.votes == 2
        assert terminal.game.rating == pytest.approx(8.0)
        assert store.updates[0].page == 2


class TestTermination:
    """Tests for cancellation and fatal errors."""

    def test_cancelled_before_start(self) -> None:
        """A pre-set cancellation makes no requests or writes."""
        game = Game(id=1, name="Skipped")
        source = FakeSource(pages={1: [[("a", 7.0)]]})
        store = FakeStore([game])
        cancel = threading.Event()
        cancel.set()
        worker, events = make_worker(game, store, source, cancel_event=cancel)

        terminal = worker.run()

        assert terminal == Interrupted(game_id=1)
        assert events == [terminal]
        assert source.page_calls == []
        assert store.updates == []

    def test_cancel_between_pages(self) -> None:
        """Cancellation lets the current page finish, then stops."""
        game = Game(id=1, name="Stopped")
        source = FakeSource(
            pages={1: [[("a", 7.0)], [("a", 8.0)], [("a", 9.0)]]},
            averages={"a": 5.0},
        )
        cancel = threading.Event()
        source.on_page = lambda _game, page: cancel.set() if page == 2 else None
        store = FakeStore([game])
        worker, _ = make_worker(game, store, source, cancel_event=cancel)

        terminal = worker.run()

        assert isinstance(terminal, Interrupted)
        assert store.updates[-1].page == 3
        assert not store.updates[-1].stable
        assert source.page_calls == [(1, 1), (1, 2)]

    def test_store_error_is_fatal_without_retry(self) -> None:
        """A failed write stops the worker at once."""
        game = Game(id=3, name="Broken")
        source = FakeSource(pages={3: [[("a", 7.0)]]}, averages={"a": 5.0})
        store = FakeStore([game])
        store.fail_update_on.add(3)
        worker, events = make_worker(game, store, source)

        terminal = worker.run()

        assert isinstance(terminal, Fatal)
        assert isinstance(terminal.error, OperationError)
        assert source.page_calls == [(3, 1)]
        assert worker.state == WorkerState.FATAL
        assert sum(isinstance(e, Fatal) for e in events) == 1

    def test_store_open_failure_is_fatal(self) -> None:
        """Failing to open the worker's connection is reported as fatal."""
        game = Game(id=3, name="NoDb")

        def broken_store() -> FakeStore:
            raise StoreConnectionError("cannot open")

        events: list[WorkerEvent] = []
        worker = GameConvergenceWorker(
            game=game,
            config=AppConfig(delay_ms=0),
            cancel_event=threading.Event(),
            emit=events.append,
            store_factory=broken_store,  # type: ignore[arg-type]
            source_factory=factory(FakeSource()),  # type: ignore[arg-type]
            sleep=no_sleep,
        )

        terminal = worker.run()

        assert isinstance(terminal, Fatal)
        assert isinstance(terminal.error, StoreConnectionError)
        assert events == [terminal]

    def test_unexpected_error_is_fatal(self) -> None:
        """Bugs surface as a fatal event instead of a lost worker."""
        game = Game(id=4, name="Bug")
        source = FakeSource()
        source.failures.append(RuntimeError("boom"))
        worker, events = make_worker(game, FakeStore([game]), source)

        terminal = worker.run()

        assert isinstance(terminal, Fatal)
        assert isinstance(terminal.error, RuntimeError)
        assert events == [terminal]
