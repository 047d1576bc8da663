"""BoardGameGeek fetching and page parsing."""

from bggtop.fetch.client import BggClient
from bggtop.fetch.config import FetchConfig
from bggtop.fetch.metrics import FetchMetrics
from bggtop.fetch.models import (
    FetchErrorClass,
    ParseError,
    RaterRating,
    SourceFetchError,
)


__all__ = [
    "BggClient",
    "FetchConfig",
    "FetchErrorClass",
    "FetchMetrics",
    "ParseError",
    "RaterRating",
    "SourceFetchError",
]
