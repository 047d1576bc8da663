"""Configuration model for the BoardGameGeek client."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from bggtop.config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from bggtop.fetch.constants import (
    BGG_API_URL,
    BGG_SITE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
)


class FetchConfig(BaseModel):
    """Settings shared by every BggClient of a run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = (
        DEFAULT_TIMEOUT_SECONDS
    )
    site_url: Annotated[str, Field(min_length=1)] = BGG_SITE_URL
    api_url: Annotated[str, Field(min_length=1)] = BGG_API_URL
    page_size: Annotated[int, Field(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE

    def rater_page_url(self, game_id: int, page: int) -> str:
        """URL of one page of a game's rating comments."""
        return (
            f"{self.api_url}/thing?type=boardgame&id={game_id}"
            f"&ratingcomments=1&page={page}&pagesize={self.page_size}"
        )

    def user_url(self, rater_id: str) -> str:
        """URL of a user's profile page."""
        return f"{self.site_url}/user/{rater_id}"

    def search_url(self, page: int, min_votes: int) -> str:
        """URL of an advanced search page listing games without expansions."""
        return (
            f"{self.site_url}/search/boardgame/page/{page}"
            f"?advsearch=1&range%5Bnumvoters%5D%5Bmin%5D={min_votes}"
            "&nosubtypes%5B0%5D=boardgameexpansion"
        )
