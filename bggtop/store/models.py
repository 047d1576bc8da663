"""Data models for the SQLite state store."""

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class Game(BaseModel):
    """A ranked board game and its re-evaluation progress.

    ``rating`` and ``votes`` only ever contain trusted ratings; ``page`` is
    the next rater page to fetch. The ``bgg_*`` fields are copied from the
    search listing at pull time and are only used for reporting.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: Annotated[int, Field(ge=1, description="BGG game id (primary key)")]
    name: Annotated[str, Field(description="Display name")]
    rating: float = Field(default=0.0, description="Mean of trusted ratings")
    votes: Annotated[int, Field(ge=0, description="Trusted ratings folded")] = 0
    page: Annotated[int, Field(ge=1, description="Next rater page to fetch")] = 1
    stable: bool = Field(default=False, description="All rater pages consumed")
    bgg_num_votes: Annotated[int, Field(ge=0)] = 0
    bgg_geek_rating: float = 0.0
    bgg_avg_rating: float = 0.0


class Rater(BaseModel):
    """A BGG user whose trustworthiness has been decided."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Annotated[str, Field(min_length=1, description="BGG user name")]
    trusted: bool = Field(description="Whether the rater's ratings are folded")
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the trust flag was written",
    )
