"""Metrics collection for the state store."""

from dataclasses import dataclass, field
from threading import Lock


# Module-level singleton state
_metrics_instance: "StoreMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class StoreMetrics:
    """Thread-safe metrics for state store operations.

    Every worker owns its own connection but all of them report here.

    Attributes:
        games_added_total: Games inserted by the pull pass.
        games_updated_total: Progress writes (stable=false).
        games_stabilized_total: Final writes (stable=true).
        raters_inserted_total: New rater rows written.
        raters_ignored_total: Rater inserts that lost the race to another worker.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of committed transactions.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    games_added_total: int = 0
    games_updated_total: int = 0
    games_stabilized_total: int = 0
    raters_inserted_total: int = 0
    raters_ignored_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get the singleton instance (thread-safe)."""
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_games_added(self, count: int) -> None:
        """Record games inserted by a pull."""
        with self._lock:
            self.games_added_total += count

    def record_game_update(self, stable: bool) -> None:
        """Record a game write.

        Args:
            stable: Whether the write marked the game stable.
        """
        with self._lock:
            if stable:
                self.games_stabilized_total += 1
            else:
                self.games_updated_total += 1

    def record_rater_insert(self, inserted: bool) -> None:
        """Record an insert-if-absent outcome.

        Args:
            inserted: False when the row already existed.
        """
        with self._lock:
            if inserted:
                self.raters_inserted_total += 1
            else:
                self.raters_ignored_total += 1

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            self.db_tx_duration_ms += duration_ms
            self.db_tx_count += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "games_added_total": self.games_added_total,
                "games_updated_total": self.games_updated_total,
                "games_stabilized_total": self.games_stabilized_total,
                "raters_inserted_total": self.raters_inserted_total,
                "raters_ignored_total": self.raters_ignored_total,
                "db_tx_duration_ms": self.db_tx_duration_ms,
                "db_tx_count": self.db_tx_count,
            }


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count.

        Args:
            rows: Number of rows affected.
        """
        self.affected_rows += rows
