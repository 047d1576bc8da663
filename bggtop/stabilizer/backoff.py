"""Adaptive delay and attempt budget for one worker."""


class BackoffToken:
    """Linear backoff controller.

    The attempt level ``i`` starts at 0. Each failure hardens it by one, each
    success eases it by one. Once ``i`` reaches ``limit`` the token is
    stopped for good: easing no longer brings it back.
    """

    def __init__(self, limit: int, delay_step_ms: int) -> None:
        """Initialize the token.

        Args:
            limit: Attempt level at which the token stops.
            delay_step_ms: Delay added per attempt level, in milliseconds.
        """
        self._limit = limit
        self._delay_step_ms = delay_step_ms
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Current attempt level."""
        return self._attempt

    @property
    def limit(self) -> int:
        """Stopping threshold."""
        return self._limit

    @property
    def delay_ms(self) -> int:
        """Delay to wait before the next request."""
        return self._delay_step_ms * self._attempt

    @property
    def delay_seconds(self) -> float:
        """Same as ``delay_ms``, for ``time.sleep``."""
        return self.delay_ms / 1000.0

    @property
    def is_stopped(self) -> bool:
        """Whether the failure budget is spent."""
        return self._attempt >= self._limit

    def ease(self) -> None:
        """Step back after a success. No-op at zero or once stopped."""
        if self._attempt > 0 and not self.is_stopped:
            self._attempt -= 1

    def harden(self) -> None:
        """Step up after a failure."""
        self._attempt += 1

    def __repr__(self) -> str:
        return (
            f"BackoffToken(attempt={self._attempt}, limit={self._limit}, "
            f"delay_ms={self.delay_ms})"
        )
