"""HTTP constants for the fetch layer."""

# HTTP status codes
HTTP_STATUS_OK = 200
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# BoardGameGeek endpoints
BGG_SITE_URL = "https://boardgamegeek.com"
BGG_API_URL = "https://www.boardgamegeek.com/xmlapi2"

DEFAULT_USER_AGENT = "bggtop/0.1"
DEFAULT_TIMEOUT_SECONDS = 30.0

# Position of the ratings average on a user profile page (zero-based):
# fourth profile block, its sixth table, third row, second cell
PROFILE_BLOCK_INDEX = 3
PROFILE_TABLE_INDEX = 5
PROFILE_ROW_INDEX = 2
PROFILE_CELL_INDEX = 1

# Cell positions in a search result row (zero-based)
SEARCH_LINK_CELL = 2
SEARCH_GEEK_RATING_CELL = 3
SEARCH_AVG_RATING_CELL = 4
SEARCH_NUM_VOTES_CELL = 5
