"""Incremental mean that can be resumed from a persisted (count, mean) pair."""

from collections.abc import Iterable


class RunningAverage:
    """Numerically stable running mean.

    The mean is updated as ``mean += (value - mean) / (count + 1)`` so no
    growing sum is ever held. Starting from a stored ``(votes, rating)`` pair
    yields the same result as folding every value from scratch.
    """

    def __init__(self, count: int = 0, mean: float = 0.0) -> None:
        """Initialize from a previous state.

        Args:
            count: Number of values already folded.
            mean: Mean of those values (ignored when count is 0).

        Raises:
            ValueError: If count is negative.
        """
        if count < 0:
            msg = f"count must be non-negative, got {count}"
            raise ValueError(msg)
        self._count = count
        self._mean = mean if count else 0.0

    @property
    def count(self) -> int:
        """Number of values folded so far."""
        return self._count

    @property
    def mean(self) -> float:
        """Current mean; 0.0 while empty."""
        return self._mean

    def add(self, value: float) -> None:
        """Fold one value."""
        self._mean += (value - self._mean) / (self._count + 1)
        self._count += 1

    def add_all(self, values: Iterable[float]) -> None:
        """Fold values in iteration order."""
        for value in values:
            self.add(value)

    def __repr__(self) -> str:
        return f"RunningAverage(count={self._count}, mean={self._mean!r})"
