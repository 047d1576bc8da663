"""Sequential pull of the game listing into the store."""

from collections.abc import Callable, Iterator
from typing import Protocol

import structlog

from bggtop.config.constants import COMPONENT_INGEST
from bggtop.store.models import Game
from bggtop.store.store import StateStore


logger = structlog.get_logger()


class GameListingSource(Protocol):
    """Source of paginated game listings."""

    def fetch_games_page(self, page: int, min_votes: int) -> list[Game]:
        """Fetch one listing page."""
        ...


def iter_game_pages(source: GameListingSource, min_votes: int) -> Iterator[list[Game]]:
    """Yield listing pages from page 1 until the listing runs out.

    BGG answers page numbers past the end either with an empty table or by
    repeating the last page, so iteration stops on an empty page or on a
    page starting with the same game as the previous one.

    Args:
        source: Listing source.
        min_votes: Minimum BGG vote count.

    Yields:
        Non-empty pages of games.

    Raises:
        SourceFetchError: If a page cannot be fetched; not retried.
    """
    page = 1
    previous_first: int | None = None
    while True:
        games = source.fetch_games_page(page, min_votes)
        if not games or games[0].id == previous_first:
            return
        previous_first = games[0].id
        yield games
        page += 1


def pull_games(
    store: StateStore,
    source: GameListingSource,
    min_votes: int,
    progress: Callable[[int, int], None] | None = None,
    run_id: str = "",
) -> int:
    """Replace the stored games with a fresh listing.

    All games, including their balancing progress, are dropped first. Rater
    trust flags are kept.

    Args:
        store: Connected state store.
        source: Listing source.
        min_votes: Minimum BGG vote count; must be positive.
        progress: Called with (page number, games added so far) per page.
        run_id: Run identifier for logging.

    Returns:
        Number of games added.

    Raises:
        ValueError: If min_votes is not positive.
        SourceFetchError: If a page cannot be fetched. Pages already stored
            stay stored.
    """
    if min_votes < 1:
        msg = f"Can't get top with a vote limit of {min_votes}"
        raise ValueError(msg)

    log = logger.bind(component=COMPONENT_INGEST, run_id=run_id, min_votes=min_votes)
    dropped = store.drop_all_games()
    log.info("games_dropped", count=dropped)

    total = 0
    for page_number, games in enumerate(iter_game_pages(source, min_votes), start=1):
        total += store.add_games(games)
        log.debug("listing_page_stored", page=page_number, games=len(games))
        if progress is not None:
            progress(page_number, total)

    log.info("pull_complete", games=total)
    return total
