"""SQLite state store for games and rater trust flags."""

from bggtop.store.errors import (
    ConnectionError,
    GameNotFoundError,
    MigrationError,
    OperationError,
    StateStoreError,
)
from bggtop.store.metrics import StoreMetrics
from bggtop.store.migrations import CURRENT_VERSION, MigrationManager
from bggtop.store.models import Game, Rater
from bggtop.store.store import StateStore


__all__ = [
    "CURRENT_VERSION",
    "ConnectionError",
    "Game",
    "GameNotFoundError",
    "MigrationError",
    "MigrationManager",
    "OperationError",
    "Rater",
    "StateStore",
    "StateStoreError",
    "StoreMetrics",
]
