"""Final ranking report."""

from bggtop.store.models import Game
from bggtop.store.store import StateStore


REPORT_HEADER = (
    "Id",
    "Name",
    "Rating",
    "Votes",
    "Geek Rating",
    "Avg BGG Rating",
    "BGG Votes",
)


def make_report(store: StateStore) -> list[Game]:
    """Rank the games once every game is stable.

    Args:
        store: Connected state store.

    Returns:
        All games by trusted rating, highest first; empty while any game is
        still unstable.
    """
    if store.count_unstable_games() > 0:
        return []
    return store.get_all_games()


def format_row(game: Game) -> tuple[str, ...]:
    """Render one report row as strings."""
    return (
        str(game.id),
        game.name,
        f"{game.rating:.2f}",
        str(game.votes),
        f"{game.bgg_geek_rating:.3f}",
        f"{game.bgg_avg_rating:.2f}",
        str(game.bgg_num_votes),
    )


def format_report(games: list[Game]) -> str:
    """Tab-separated report with a header line."""
    lines = ["\t".join(REPORT_HEADER)]
    lines.extend("\t".join(format_row(game)) for game in games)
    return "\n".join(lines)
