"""SQLite state store implementation."""

import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import structlog

from bggtop.config.constants import COMPONENT_STORE
from bggtop.store.errors import (
    ConnectionError as StoreConnectionError,
    GameNotFoundError,
    OperationError,
)
from bggtop.store.metrics import StoreMetrics, TransactionContext
from bggtop.store.migrations import CURRENT_VERSION, MigrationManager
from bggtop.store.models import Game, Rater


logger = structlog.get_logger()

# Seconds a writer waits on a locked database before failing
DEFAULT_BUSY_TIMEOUT_SECONDS = 30.0

_GAME_COLUMNS = (
    "id, name, rating, num_votes, page, stable, "
    "bgg_num_votes, bgg_geek_rating, bgg_avg_rating"
)


class StateStore:
    """SQLite store for games and rater trust flags.

    One instance wraps one connection. sqlite3 connections are bound to the
    thread that opened them, so every balancing worker opens its own store.
    WAL mode plus a busy timeout lets those connections write side by side.
    """

    def __init__(
        self,
        db_path: Path | str,
        run_id: str | None = None,
        timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the state store.

        Args:
            db_path: Path to SQLite database file.
            run_id: Optional run ID for logging context.
            timeout_seconds: How long to wait for a locked database.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._run_id = run_id or str(uuid.uuid4())
        self._timeout_seconds = timeout_seconds
        self._conn: sqlite3.Connection | None = None
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component=COMPONENT_STORE,
            run_id=self._run_id,
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.

        Raises:
            StoreConnectionError: If the database cannot be opened.
        """
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._log.debug("connecting_to_database")

        try:
            conn = sqlite3.connect(str(self._db_path), timeout=self._timeout_seconds)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error as e:
            msg = f"Cannot open database {self._db_path}: {e}"
            raise StoreConnectionError(msg) from e

        self._conn = conn
        try:
            migration_mgr = MigrationManager(conn)
            old_version = migration_mgr.get_current_version()
            applied = migration_mgr.apply_migrations()
        except sqlite3.Error as e:
            self.close()
            msg = f"Cannot read schema version of {self._db_path}: {e}"
            raise StoreConnectionError(msg) from e
        except Exception:
            self.close()
            raise

        self._log.debug(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.debug("database_closed")

    def __enter__(self) -> "StateStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[TransactionContext]:
        """Context manager for write transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.

        Raises:
            OperationError: If SQLite rejects the statement or the commit.
        """
        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(
            tx_id=tx_id, start_time_ns=start_ns, operation=operation
        )

        try:
            yield ctx
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            self._log.error(
                "transaction_failed",
                tx_id=tx_id,
                op=operation,
                error=str(e),
            )
            raise OperationError(operation, str(e)) from e
        except Exception:
            conn.rollback()
            self._log.error("transaction_failed", tx_id=tx_id, op=operation)
            raise

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_tx_duration(duration_ms)
        self._log.debug(
            "transaction_complete",
            tx_id=tx_id,
            op=operation,
            affected_rows=ctx.affected_rows,
            duration_ms=round(duration_ms, 2),
        )

    def _fetch_all(
        self,
        operation: str,
        sql: str,
        params: tuple[object, ...] = (),
    ) -> list[sqlite3.Row]:
        """Run a read query.

        Raises:
            OperationError: If SQLite rejects the query.
        """
        conn = self._ensure_connected()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            self._log.error("query_failed", op=operation, error=str(e))
            raise OperationError(operation, str(e)) from e

    @staticmethod
    def _row_to_game(row: sqlite3.Row) -> Game:
        """Build a Game from a games row."""
        return Game(
            id=row["id"],
            name=row["name"],
            rating=row["rating"],
            votes=row["num_votes"],
            page=row["page"],
            stable=bool(row["stable"]),
            bgg_num_votes=row["bgg_num_votes"],
            bgg_geek_rating=row["bgg_geek_rating"],
            bgg_avg_rating=row["bgg_avg_rating"],
        )

    # ===== Games =====

    def add_games(self, games: Iterable[Game]) -> int:
        """Insert freshly pulled games as unstable, with no progress.

        Games already present are left untouched, which happens when the
        search listing shifts between two page requests.

        Args:
            games: Games parsed from a search page.

        Returns:
            Number of rows inserted.
        """
        now = datetime.now(UTC).isoformat()
        with self._transaction("add_games") as ctx:
            conn = self._ensure_connected()
            for game in games:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO games (
                        id, name, rating, num_votes, page, stable, updated,
                        bgg_num_votes, bgg_geek_rating, bgg_avg_rating
                    ) VALUES (?, ?, 0, 0, 1, 0, ?, ?, ?, ?)
                    """,
                    (
                        game.id,
                        game.name,
                        now,
                        game.bgg_num_votes,
                        game.bgg_geek_rating,
                        game.bgg_avg_rating,
                    ),
                )
                ctx.add_affected_rows(cursor.rowcount)

        self._metrics.record_games_added(ctx.affected_rows)
        return ctx.affected_rows

    def drop_all_games(self) -> int:
        """Delete every game; rater trust flags are kept.

        Returns:
            Number of rows deleted.
        """
        with self._transaction("drop_all_games") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute("DELETE FROM games")
            ctx.add_affected_rows(cursor.rowcount)

        self._log.info("games_dropped", count=ctx.affected_rows)
        return ctx.affected_rows

    def get_unstable_games(self) -> list[Game]:
        """Get every game that still has rater pages to consume.

        Returned in random order so a small pool does not always start on
        the same games.
        """
        rows = self._fetch_all(
            "get_unstable_games",
            f"SELECT {_GAME_COLUMNS} FROM games WHERE stable = 0 ORDER BY random()",  # noqa: S608
        )
        return [self._row_to_game(row) for row in rows]

    def count_unstable_games(self) -> int:
        """Count games that are not stable yet."""
        rows = self._fetch_all(
            "count_unstable_games",
            "SELECT COUNT(*) FROM games WHERE stable = 0",
        )
        return int(rows[0][0])

    def get_game(self, game_id: int) -> Game | None:
        """Get a game by id.

        Args:
            game_id: BGG game id.

        Returns:
            The Game, or None if not found.
        """
        rows = self._fetch_all(
            "get_game",
            f"SELECT {_GAME_COLUMNS} FROM games WHERE id = ?",  # noqa: S608
            (game_id,),
        )
        return self._row_to_game(rows[0]) if rows else None

    def get_all_games(self) -> list[Game]:
        """Get all games, best trusted rating first."""
        rows = self._fetch_all(
            "get_all_games",
            f"SELECT {_GAME_COLUMNS} FROM games ORDER BY rating DESC, id",  # noqa: S608
        )
        return [self._row_to_game(row) for row in rows]

    def update_game(self, game: Game, stable: bool) -> None:
        """Persist a game's progress.

        Writes page, rating, votes and the stable flag, and touches the
        update timestamp.

        Args:
            game: Snapshot to persist.
            stable: Whether all rater pages have been consumed.

        Raises:
            GameNotFoundError: If the game row no longer exists.
            OperationError: If the write fails.
        """
        with self._transaction("update_game") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                UPDATE games
                SET page = ?, stable = ?, rating = ?, num_votes = ?, updated = ?
                WHERE id = ?
                """,
                (
                    game.page,
                    1 if stable else 0,
                    game.rating,
                    game.votes,
                    datetime.now(UTC).isoformat(),
                    game.id,
                ),
            )
            if cursor.rowcount == 0:
                raise GameNotFoundError(game.id)
            ctx.add_affected_rows(cursor.rowcount)

        self._metrics.record_game_update(stable)

    # ===== Raters =====

    def check_rater_trust(self, name: str) -> bool | None:
        """Look up a rater's trust flag.

        Args:
            name: BGG user name.

        Returns:
            The stored flag, or None if the rater has not been seen.
        """
        rows = self._fetch_all(
            "check_rater_trust",
            "SELECT trusted FROM raters WHERE name = ?",
            (name,),
        )
        return bool(rows[0]["trusted"]) if rows else None

    def get_rater(self, name: str) -> Rater | None:
        """Get a full rater record.

        Args:
            name: BGG user name.

        Returns:
            The Rater, or None if not found.
        """
        rows = self._fetch_all(
            "get_rater",
            "SELECT name, updated, trusted FROM raters WHERE name = ?",
            (name,),
        )
        if not rows:
            return None
        row = rows[0]
        return Rater(
            name=row["name"],
            trusted=bool(row["trusted"]),
            updated_at=datetime.fromisoformat(row["updated"]),
        )

    def insert_rater_if_absent(
        self,
        name: str,
        trusted: bool,
        updated_at: datetime | None = None,
    ) -> bool:
        """Record a rater's trust flag unless one is already stored.

        Safe to call from several connections for the same name at once:
        the primary key turns every insert but the first into a no-op.

        Args:
            name: BGG user name.
            trusted: Trust classification.
            updated_at: Timestamp to store (defaults to now).

        Returns:
            True if this call inserted the row.
        """
        updated_at = updated_at or datetime.now(UTC)
        with self._transaction("insert_rater_if_absent") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "INSERT OR IGNORE INTO raters (name, updated, trusted) VALUES (?, ?, ?)",
                (name, updated_at.isoformat(), 1 if trusted else 0),
            )
            ctx.add_affected_rows(cursor.rowcount)

        inserted = ctx.affected_rows == 1
        self._metrics.record_rater_insert(inserted)
        return inserted

    # ===== Maintenance =====

    def get_schema_version(self) -> int:
        """Get the applied schema version."""
        return MigrationManager(self._ensure_connected()).get_current_version()

    def get_stats(self) -> dict[str, int]:
        """Get row counts for the report and db-stats commands."""
        games = self._fetch_all(
            "get_stats",
            "SELECT COUNT(*), COALESCE(SUM(stable), 0) FROM games",
        )[0]
        raters = self._fetch_all(
            "get_stats",
            "SELECT COUNT(*), COALESCE(SUM(trusted), 0) FROM raters",
        )[0]
        return {
            "games": int(games[0]),
            "games_stable": int(games[1]),
            "games_unstable": int(games[0]) - int(games[1]),
            "raters": int(raters[0]),
            "raters_trusted": int(raters[1]),
            "raters_untrusted": int(raters[0]) - int(raters[1]),
        }
