"""Metrics collection for the fetch layer."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock

from bggtop.fetch.models import FetchErrorClass


_metrics_instance: "FetchMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class FetchMetrics:
    """Thread-safe metrics for requests made to BoardGameGeek."""

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    requests_by_status: Counter[int] = field(default_factory=Counter)
    failures_by_class: Counter[str] = field(default_factory=Counter)
    request_count: int = 0
    bytes_total: int = 0
    duration_ms_total: float = 0.0

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
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

    def record_request(self, status_code: int, size: int, duration_ms: float) -> None:
        """Record a completed HTTP exchange."""
        with self._lock:
            self.requests_by_status[status_code] += 1
            self.request_count += 1
            self.bytes_total += size
            self.duration_ms_total += duration_ms

    def record_failure(self, error_class: FetchErrorClass) -> None:
        """Record a failed fetch by class."""
        with self._lock:
            self.failures_by_class[error_class.value] += 1

    @property
    def failure_count(self) -> int:
        """Total failed fetches."""
        with self._lock:
            return sum(self.failures_by_class.values())

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary."""
        with self._lock:
            return {
                "request_count": self.request_count,
                "requests_by_status": dict(self.requests_by_status),
                "failures_by_class": dict(self.failures_by_class),
                "bytes_total": self.bytes_total,
                "duration_ms_total": round(self.duration_ms_total, 2),
            }
