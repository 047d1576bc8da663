"""Data models and errors for the fetch layer."""

from dataclasses import dataclass
from enum import Enum


class FetchErrorClass(str, Enum):
    """Classification of fetch errors for metrics and reporting.

    - NETWORK_TIMEOUT: Request timed out
    - CONNECTION_ERROR: Could not establish connection
    - HTTP_4XX: 4xx client error (except 429)
    - HTTP_5XX: 5xx server error
    - RATE_LIMITED: 429 Too Many Requests
    - UNEXPECTED_STATUS: Any other non-200 status (BGG answers 202 while queuing)
    - PARSE: Page arrived but did not have the expected shape
    - UNKNOWN: Unclassified error
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    RATE_LIMITED = "RATE_LIMITED"
    UNEXPECTED_STATUS = "UNEXPECTED_STATUS"
    PARSE = "PARSE"
    UNKNOWN = "UNKNOWN"


class SourceFetchError(Exception):
    """A failed request to BoardGameGeek.

    Always treated as transient by the stabilization engine: the same page
    or rater lookup is retried after backing off.
    """

    def __init__(
        self,
        error_class: FetchErrorClass,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize the fetch error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            url: Requested URL, if known.
            status_code: HTTP status code, if a response arrived.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.url = url
        self.status_code = status_code

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "url": self.url,
            "status_code": self.status_code,
        }


class ParseError(SourceFetchError):
    """Page content did not match the expected markup."""

    def __init__(self, message: str, url: str | None = None) -> None:
        """Initialize the parse error.

        Args:
            message: What was missing or malformed.
            url: Page URL, if known.
        """
        super().__init__(FetchErrorClass.PARSE, message, url=url)


@dataclass(frozen=True)
class RaterRating:
    """One rating from one page of a game's rating comments."""

    rater_id: str
    rating: float
