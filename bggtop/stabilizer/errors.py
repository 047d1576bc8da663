"""Errors raised by the stabilization engine."""


class StabilizationError(Exception):
    """Base class for stabilization errors."""


class BackoffExhaustedError(StabilizationError):
    """A worker ran out of retries against the remote source."""

    def __init__(self, game_id: int, attempts: int) -> None:
        """Initialize the error.

        Args:
            game_id: Game whose worker gave up.
            attempts: Attempt level reached.
        """
        self.game_id = game_id
        self.attempts = attempts
        super().__init__(
            f"Backoff exhausted for game {game_id} after {attempts} attempts"
        )


class StabilizationFailedError(StabilizationError):
    """The run stopped because one worker hit an unrecoverable error."""

    def __init__(self, game_id: int, cause: BaseException) -> None:
        """Initialize the error.

        Args:
            game_id: Game whose worker failed first.
            cause: The original error.
        """
        self.game_id = game_id
        self.cause = cause
        super().__init__(f"Stabilization failed on game {game_id}: {cause}")

    def to_dict(self) -> dict[str, str | int]:
        """Convert error to dictionary for logging."""
        return {
            "game_id": self.game_id,
            "cause_type": type(self.cause).__name__,
            "cause": str(self.cause),
        }
