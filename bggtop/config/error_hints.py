"""Hints shown next to configuration validation errors."""

from typing import Final


# Mapping of error types to user-friendly hints
ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "This field is required. Please add it to your configuration.",
    "int_type": "This field must be an integer (whole number).",
    "int_parsing": "This field must be an integer (whole number).",
    "float_type": "This field must be a number.",
    "float_parsing": "This field must be a number.",
    "greater_than_equal": "The value is too small. Check the minimum allowed.",
    "less_than_equal": "The value is too large. Check the maximum allowed.",
    "extra_forbidden": "Unknown key. Run `bggtop new` to see the accepted keys.",
    "value_error": "Check the value against the other fields it depends on.",
    "file_not_found": "The file does not exist. Run `bggtop new` to create it.",
    "yaml_parse_error": "Invalid YAML syntax. Check for proper indentation and formatting.",
}

# Field-specific hints for more context
FIELD_HINTS: Final[dict[str, str]] = {
    "limit": "Minimum number of BGG votes for a game to be pulled (at least 1).",
    "attempts": "Failures a worker absorbs before giving up (at least 1).",
    "delay_ms": "Backoff step in milliseconds (0 or more).",
    "threads": "Number of games balanced at once (1 to 256).",
    "trust_lower_bound": "Raters averaging at or below this are ignored; must be below trust_upper_bound.",
    "trust_upper_bound": "Raters averaging at or above this are ignored; must be above trust_lower_bound.",
    "page_size": "Ratings per page requested from BGG (1 to 100).",
}


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a user-friendly hint for a validation error.

    Args:
        error_type: The Pydantic error type (e.g., 'missing').
        field_name: Optional field name for field-specific hints.

    Returns:
        A user-friendly hint string.
    """
    if field_name:
        simple_field = field_name.split(".")[-1]
        if simple_field in FIELD_HINTS:
            return FIELD_HINTS[simple_field]

    return ERROR_HINTS.get(error_type, "Run `bggtop new` for a valid example file.")


def format_validation_error(
    location: str,
    message: str,
    error_type: str,
    *,
    include_hint: bool = True,
) -> str:
    """Format a validation error with optional hint.

    Args:
        location: The error location (e.g., 'threads').
        message: The original error message.
        error_type: The error type.
        include_hint: Whether to include a hint.

    Returns:
        Formatted error string.
    """
    base = f"{location}: {message}"
    if include_hint:
        hint = get_error_hint(error_type, location)
        return f"{base}\n    Hint: {hint}"
    return base
