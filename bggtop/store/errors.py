"""Domain exceptions for the state store.

Every failure raised by the store inherits from ``StateStoreError``. The
stabilization engine treats any of them as unrecoverable for the worker that
hit it.
"""


class StateStoreError(Exception):
    """Base exception for all state store errors."""


class ConnectionError(StateStoreError):
    """Raised when database connection fails or is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class OperationError(StateStoreError):
    """Raised when a read or write against SQLite fails.

    Wraps the underlying ``sqlite3.Error`` (available as ``__cause__``) and
    records which store operation was running.
    """

    def __init__(self, operation: str, message: str) -> None:
        """Initialize the operation error.

        Args:
            operation: Store operation name (e.g. ``update_game``).
            message: Message from the underlying database error.
        """
        self.operation = operation
        super().__init__(f"Store operation '{operation}' failed: {message}")


class GameNotFoundError(StateStoreError):
    """Raised when an update targets a game that is not in the database."""

    def __init__(self, game_id: int) -> None:
        """Initialize the error with the missing game ID.

        Args:
            game_id: The BGG id that was not found.
        """
        self.game_id = game_id
        super().__init__(f"Game not found: {game_id}")


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
