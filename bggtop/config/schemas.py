"""Pydantic schema for the application config file."""

from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bggtop.config.constants import (
    DEFAULT_ATTEMPTS,
    DEFAULT_DELAY_MS,
    DEFAULT_LIMIT,
    DEFAULT_PAGE_SIZE,
    DEFAULT_THREADS,
    DEFAULT_TRUST_LOWER_BOUND,
    DEFAULT_TRUST_UPPER_BOUND,
    MAX_PAGE_SIZE,
)


class AppConfig(BaseModel):
    """Run configuration loaded once per command.

    Frozen after validation; every worker receives the same instance.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    limit: Annotated[
        int,
        Field(ge=1, description="Minimum BGG vote count for pulled games"),
    ] = DEFAULT_LIMIT
    attempts: Annotated[
        int,
        Field(ge=1, description="Consecutive remote failures a worker survives"),
    ] = DEFAULT_ATTEMPTS
    delay_ms: Annotated[
        int,
        Field(ge=0, description="Backoff delay added per failure (ms)"),
    ] = DEFAULT_DELAY_MS
    threads: Annotated[
        int,
        Field(ge=1, le=256, description="Worker pool size"),
    ] = DEFAULT_THREADS
    trust_lower_bound: Annotated[
        float,
        Field(description="Exclusive lower bound of a trusted rater average"),
    ] = DEFAULT_TRUST_LOWER_BOUND
    trust_upper_bound: Annotated[
        float,
        Field(description="Exclusive upper bound of a trusted rater average"),
    ] = DEFAULT_TRUST_UPPER_BOUND
    page_size: Annotated[
        int,
        Field(ge=1, le=MAX_PAGE_SIZE, description="Ratings requested per page"),
    ] = DEFAULT_PAGE_SIZE

    @model_validator(mode="after")
    def validate_trust_bounds(self) -> Self:
        """Ensure the trust interval is not empty."""
        if self.trust_lower_bound >= self.trust_upper_bound:
            msg = (
                f"trust_lower_bound ({self.trust_lower_bound}) must be lower than "
                f"trust_upper_bound ({self.trust_upper_bound})"
            )
            raise ValueError(msg)
        return self
