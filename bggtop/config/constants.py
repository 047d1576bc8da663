"""Constants for the configuration module."""

# Default file names, relative to the working directory
DEFAULT_CONFIG_FILE_NAME = "bggtop.yaml"
DEFAULT_DB_FILE_NAME = "top.db"

# Values written by `bggtop new`
DEFAULT_LIMIT = 1000
DEFAULT_ATTEMPTS = 20
DEFAULT_DELAY_MS = 500
DEFAULT_THREADS = 4

# Raters whose own average falls outside (lower, upper) are not trusted
DEFAULT_TRUST_LOWER_BOUND = 2.0
DEFAULT_TRUST_UPPER_BOUND = 8.0

# BGG xmlapi2 caps ratingcomments pages at 100
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 100

# Log component names
COMPONENT_CONFIG = "config"
COMPONENT_CLI = "cli"
COMPONENT_STORE = "store"
COMPONENT_FETCH = "fetch"
COMPONENT_INGEST = "ingest"
COMPONENT_WORKER = "worker"
COMPONENT_ORCHESTRATOR = "orchestrator"
