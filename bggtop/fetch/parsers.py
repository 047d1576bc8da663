"""Parsers turning BoardGameGeek pages into typed records."""

from bs4 import BeautifulSoup, Tag

from bggtop.fetch.constants import (
    PROFILE_BLOCK_INDEX,
    PROFILE_CELL_INDEX,
    PROFILE_ROW_INDEX,
    PROFILE_TABLE_INDEX,
    SEARCH_AVG_RATING_CELL,
    SEARCH_GEEK_RATING_CELL,
    SEARCH_LINK_CELL,
    SEARCH_NUM_VOTES_CELL,
)
from bggtop.fetch.models import ParseError, RaterRating
from bggtop.store.models import Game


def parse_rater_page(xml: str, url: str | None = None) -> list[RaterRating]:
    """Parse one page of ``ratingcomments`` from the XML API.

    A well-formed response past the last page has no ``<comment>`` elements
    and yields an empty list.

    Args:
        xml: Response body.
        url: Request URL, for error messages.

    Returns:
        Ratings in page order.

    Raises:
        ParseError: If the document is not an items response or a comment
            lacks a user name or numeric rating.
    """
    soup = BeautifulSoup(xml, "xml")
    if soup.find("items") is None:
        raise ParseError("Rater page has no <items> element", url=url)

    ratings: list[RaterRating] = []
    for tag in soup.find_all("comment"):
        name = tag.get("username")
        if not name:
            raise ParseError("Can't parse username in the user list", url=url)
        raw_rating = tag.get("rating")
        if raw_rating is None:
            raise ParseError(f"Can't parse rating of {name} in the user list", url=url)
        try:
            rating = float(raw_rating)
        except ValueError as e:
            msg = f"Invalid rating {raw_rating!r} for {name}"
            raise ParseError(msg, url=url) from e
        ratings.append(RaterRating(rater_id=str(name), rating=rating))
    return ratings


def _nth(tags: list[Tag], index: int, what: str, url: str | None) -> Tag:
    """Pick one element by position or fail with a parse error."""
    if index >= len(tags):
        raise ParseError(f"Can't find {what}", url=url)
    return tags[index]


def parse_user_average(html: str, url: str | None = None) -> float:
    """Extract a user's average rating from their profile page.

    Args:
        html: Profile page body.
        url: Request URL, for error messages.

    Returns:
        The user's average rating.

    Raises:
        ParseError: If the rating cell is missing or not a number.
    """
    soup = BeautifulSoup(html, "lxml")
    block = _nth(soup.select(".profile_block"), PROFILE_BLOCK_INDEX, "profile block", url)
    table = _nth(block.find_all("table"), PROFILE_TABLE_INDEX, "ratings table", url)
    row = _nth(table.find_all("tr"), PROFILE_ROW_INDEX, "ratings row", url)
    cell = _nth(row.find_all("td"), PROFILE_CELL_INDEX, "rating element", url)

    text = cell.get_text(strip=True)
    try:
        return float(text)
    except ValueError as e:
        raise ParseError(f"Invalid average rating {text!r}", url=url) from e


def href_to_id(href: str) -> int:
    """Extract the game id from a link like ``/boardgame/174430/gloomhaven``.

    Raises:
        ParseError: If the second-to-last path segment is not an integer.
    """
    segments = href.split("/")
    if len(segments) < 2:  # noqa: PLR2004
        raise ParseError(f"Can't parse id of the game: {href}")
    try:
        return int(segments[-2])
    except ValueError as e:
        raise ParseError(f"Can't parse id of the game: {href}") from e


def _cell_number(cells: list[Tag], index: int, what: str, url: str | None) -> str:
    return _nth(cells, index, what, url).get_text(strip=True)


def parse_search_page(html: str, url: str | None = None) -> list[Game]:
    """Parse an advanced search result page into unbalanced games.

    Args:
        html: Search page body.
        url: Request URL, for error messages.

    Returns:
        Games in listing order, with no trusted votes yet.

    Raises:
        ParseError: If a row lacks a link, id or numeric column.
    """
    soup = BeautifulSoup(html, "lxml")
    rows = [
        row
        for table in soup.select(".collection_table")
        for row in table.find_all("tr")
    ][1:]  # header

    games: list[Game] = []
    for row in rows:
        cells = row.find_all("td")
        link = _nth(cells, SEARCH_LINK_CELL, "game link", url).find("a")
        if not isinstance(link, Tag):
            raise ParseError("Could not find game link.", url=url)
        href = link.get("href")
        if not isinstance(href, str):
            raise ParseError("Could not find game id.", url=url)

        geek_rating = _cell_number(cells, SEARCH_GEEK_RATING_CELL, "geek rating", url)
        avg_rating = _cell_number(cells, SEARCH_AVG_RATING_CELL, "avg rating", url)
        num_votes = _cell_number(cells, SEARCH_NUM_VOTES_CELL, "num votes", url)
        try:
            games.append(
                Game(
                    id=href_to_id(href),
                    name=link.get_text(strip=True),
                    bgg_geek_rating=float(geek_rating),
                    bgg_avg_rating=float(avg_rating),
                    bgg_num_votes=int(num_votes.replace(",", "")),
                )
            )
        except ValueError as e:
            raise ParseError(f"Malformed search row for {href}: {e}", url=url) from e
    return games
