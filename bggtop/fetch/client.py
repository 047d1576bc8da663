"""HTTP client for BoardGameGeek pages with failure classification."""

import time
from collections.abc import Callable
from typing import TypeVar

import httpx
import structlog

from bggtop.config.constants import COMPONENT_FETCH
from bggtop.fetch.config import FetchConfig
from bggtop.fetch.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
)
from bggtop.fetch.metrics import FetchMetrics
from bggtop.fetch.models import FetchErrorClass, RaterRating, SourceFetchError
from bggtop.fetch.parsers import (
    parse_rater_page,
    parse_search_page,
    parse_user_average,
)
from bggtop.store.models import Game


logger = structlog.get_logger()

T = TypeVar("T")


class BggClient:
    """Blocking client for the three page kinds the engine reads.

    One client is owned by one worker thread; the underlying
    ``httpx.Client`` is not shared between threads. Every failure surfaces
    as a ``SourceFetchError`` and is never retried here: backoff is the
    caller's concern.
    """

    def __init__(
        self,
        config: FetchConfig,
        run_id: str = "",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Fetch configuration.
            run_id: Run identifier for logging.
            transport: Optional transport override, used by tests.
        """
        self._config = config
        self._metrics = FetchMetrics.get_instance()
        self._http = httpx.Client(
            timeout=config.timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": config.user_agent},
            transport=transport,
        )
        self._log = logger.bind(component=COMPONENT_FETCH, run_id=run_id)

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._http.close()

    def __enter__(self) -> "BggClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def fetch_rater_page(self, game_id: int, page: int) -> list[RaterRating]:
        """Fetch one page of ratings for a game.

        Args:
            game_id: Game to read.
            page: 1-based page number.

        Returns:
            Ratings on the page; empty once past the last page.

        Raises:
            SourceFetchError: On network, status or parse failure.
        """
        url = self._config.rater_page_url(game_id, page)
        return self._parsed(url, parse_rater_page)

    def fetch_rater_average(self, rater_id: str) -> float:
        """Fetch a rater's average rating across all games.

        Raises:
            SourceFetchError: On network, status or parse failure.
        """
        url = self._config.user_url(rater_id)
        return self._parsed(url, parse_user_average)

    def fetch_games_page(self, page: int, min_votes: int) -> list[Game]:
        """Fetch one page of the game listing.

        Args:
            page: 1-based listing page.
            min_votes: Minimum number of site votes for a game to be listed.

        Returns:
            Games on the page.

        Raises:
            SourceFetchError: On network, status or parse failure.
        """
        url = self._config.search_url(page, min_votes)
        return self._parsed(url, parse_search_page)

    def _parsed(self, url: str, parser: Callable[..., T]) -> T:
        body = self._get(url)
        try:
            return parser(body, url=url)
        except SourceFetchError as e:
            self._metrics.record_failure(e.error_class)
            self._log.warning("parse_failed", url=url, error=e.message)
            raise

    def _get(self, url: str) -> str:
        """Issue a GET and return the body text of a 200 response.

        Raises:
            SourceFetchError: Classified by failure kind.
        """
        start_ns = time.perf_counter_ns()
        try:
            response = self._http.get(url)
        except httpx.TimeoutException as e:
            raise self._failure(
                FetchErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}", url
            ) from e
        except httpx.ConnectError as e:
            raise self._failure(
                FetchErrorClass.CONNECTION_ERROR, f"Connection failed: {e}", url
            ) from e
        except httpx.HTTPError as e:
            raise self._failure(
                FetchErrorClass.UNKNOWN, f"Unexpected error: {e}", url
            ) from e

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        status = response.status_code
        self._metrics.record_request(status, len(response.content), duration_ms)
        self._log.debug(
            "fetch_complete",
            url=url,
            status_code=status,
            bytes=len(response.content),
            duration_ms=round(duration_ms, 2),
        )

        if status == HTTP_STATUS_OK:
            return response.text

        if status == HTTP_STATUS_TOO_MANY_REQUESTS:
            error_class = FetchErrorClass.RATE_LIMITED
            message = "Rate limited (429 Too Many Requests)"
        elif HTTP_STATUS_BAD_REQUEST <= status < HTTP_STATUS_SERVER_ERROR_MIN:
            error_class = FetchErrorClass.HTTP_4XX
            message = f"Client error ({status})"
        elif HTTP_STATUS_SERVER_ERROR_MIN <= status < HTTP_STATUS_SERVER_ERROR_MAX:
            error_class = FetchErrorClass.HTTP_5XX
            message = f"Server error ({status})"
        else:
            error_class = FetchErrorClass.UNEXPECTED_STATUS
            message = f"Unexpected status ({status})"
        raise self._failure(error_class, message, url, status)

    def _failure(
        self,
        error_class: FetchErrorClass,
        message: str,
        url: str,
        status_code: int | None = None,
    ) -> SourceFetchError:
        self._metrics.record_failure(error_class)
        self._log.warning(
            "fetch_failed",
            url=url,
            error_class=error_class.value,
            status_code=status_code,
        )
        return SourceFetchError(error_class, message, url=url, status_code=status_code)
