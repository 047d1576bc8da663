"""End-to-end stabilization against a real SQLite database."""

import sqlite3
import threading
from collections.abc import Generator
from pathlib import Path

import pytest

from bggtop.config.schemas import AppConfig
from bggtop.stabilizer.errors import StabilizationFailedError
from bggtop.stabilizer.orchestrator import StabilizationResult, stabilize
from bggtop.store.errors import GameNotFoundError
from bggtop.store.metrics import StoreMetrics
from bggtop.store.models import Game
from bggtop.store.store import StateStore
from tests.helpers.fakes import FakeSource, factory, no_sleep


@pytest.fixture
def db_path(tmp_path: Path) -> Generator[Path]:
    """Database path with fresh metrics."""
    StoreMetrics.reset()
    yield tmp_path / "top.db"
    StoreMetrics.reset()


def seed(db_path: Path, *games: Game) -> None:
    """Store games as a pull would."""
    with StateStore(db_path) as store:
        store.add_games(games)


def run(
    db_path: Path,
    source: FakeSource,
    cancel_event: threading.Event | None = None,
    threads: int = 4,
) -> StabilizationResult:
    """Run stabilize with one real connection per worker."""
    return stabilize(
        AppConfig(threads=threads, delay_ms=0, attempts=5),
        cancel_event or threading.Event(),
        store_factory=lambda: StateStore(db_path, run_id="it-run"),
        source_factory=factory(source),  # type: ignore[arg-type]
        run_id="it-run",
        sleep=no_sleep,
    )


class TestEndToEnd:
    """Full runs over a real store."""

    def test_example_game(self, db_path: Path) -> None:
        """The documented example reaches page 3, one vote, rating 7.5."""
        seed(db_path, Game(id=42, name="Example"))
        source = FakeSource(
            pages={42: [[("alice", 7.5), ("bob", 9.9)]]},
            averages={"alice": 6.0, "bob": 9.5},
        )

        result = run(db_path, source)

        assert result.stable_count == 1
        with StateStore(db_path) as store:
            game = store.get_game(42)
            assert game is not None
            assert (game.page, game.votes, game.rating, game.stable) == (3, 1, 7.5, True)
            assert store.check_rater_trust("alice") is True
            assert store.check_rater_trust("bob") is False
            assert store.count_unstable_games() == 0

    def test_many_games_share_raters(self, db_path: Path) -> None:
        """Workers on separate connections converge and share trust flags."""
        games = [Game(id=i, name=f"Game {i}") for i in range(1, 13)]
        seed(db_path, *games)
        raters = [f"user{i}" for i in range(10)]
        pages = {
            g.id: [[(r, 5.0 + (g.id % 4)) for r in raters]] * 3 for g in games
        }
        averages = {r: 3.0 + i * 0.7 for i, r in enumerate(raters)}
        source = FakeSource(pages=pages, averages=averages)

        result = run(db_path, source, threads=4)

        trusted = [r for r in raters if 2.0 < averages[r] < 8.0]
        assert result.stable_count == 12
        with StateStore(db_path) as store:
            assert store.get_stats()["raters"] == len(raters)
            for game in store.get_all_games():
                assert game.stable
                assert game.page == 5
                assert game.votes == 3 * len(trusted)
                assert game.rating == pytest.approx(5.0 + (game.id % 4))

    def test_interrupted_run_resumes(self, db_path: Path) -> None:
        """A second run continues from the persisted page without refolding."""
        seed(db_path, Game(id=1, name="Long"))
        source = FakeSource(
            pages={1: [[("a", 6.0)], [("a", 7.0)], [("a", 8.0)], [("a", 9.0)]]},
            averages={"a": 5.0},
        )
        cancel = threading.Event()
        source.on_page = lambda _game, page: cancel.set() if page == 2 else None

        first = run(db_path, source, cancel_event=cancel)

        assert first.interrupted == 1
        with StateStore(db_path) as store:
            game = store.get_game(1)
            assert game is not None
            assert (game.page, game.votes, game.stable) == (3, 2, False)

        source.on_page = None
        source.page_calls.clear()
        second = run(db_path, source)

        assert second.stable_count == 1
        assert source.page_calls[0] == (1, 3)
        with StateStore(db_path) as store:
            game = store.get_game(1)
            assert game is not None
            assert (game.page, game.votes, game.stable) == (6, 4, True)
            assert game.rating == pytest.approx(7.5)

    def test_store_failure_fails_run(self, db_path: Path) -> None:
        """A vanished game row aborts the whole run."""
        seed(db_path, *(Game(id=i, name=f"Game {i}") for i in range(1, 6)))
        source = FakeSource(
            pages={i: [[("a", 7.0)]] * 30 for i in range(1, 6)},
            averages={"a": 5.0},
        )

        def delete_game_three(game_id: int, page: int) -> None:
            if game_id == 3 and page == 1:
                conn = sqlite3.connect(db_path, timeout=30)
                conn.execute("DELETE FROM games WHERE id = 3")
                conn.commit()
                conn.close()

        source.on_page = delete_game_three

        with pytest.raises(StabilizationFailedError) as exc_info:
            run(db_path, source, threads=2)

        assert exc_info.value.game_id == 3
        assert isinstance(exc_info.value.cause, GameNotFoundError)
        with StateStore(db_path) as store:
            assert store.count_unstable_games() >= 1
