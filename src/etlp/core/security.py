"""
Security configuration and utilities for ETLP.

Centralizes limits and validators applied to untrusted input: console
lines written by players, operator-supplied filters and CSV export.
"""

from etlp.core.exceptions import ETLPError

__all__ = [
    # Configuration constants
    "MAX_LINE_LENGTH",
    "MAX_FILTER_LENGTH",
    "MAX_QUERY_LINES",
    "CSV_FORMULA_PREFIXES",
    # Exceptions
    "SecurityValidationError",
    # Validators
    "clip_line",
    "validate_filter_text",
    "sanitize_csv_cell",
]


# =============================================================================
# Security Configuration Constants
# =============================================================================

# Console lines longer than this are clipped before classification
MAX_LINE_LENGTH = 4096

# Maximum length of a player substring or exclusion name
MAX_FILTER_LENGTH = 64

# Upper bound on raw lines accepted from one fetch (a month of a busy server)
MAX_QUERY_LINES = 2_000_000

# Characters that trigger formula execution in spreadsheets
CSV_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


# =============================================================================
# Security Exceptions
# =============================================================================

class SecurityValidationError(ETLPError):
    """Raised when security validation fails."""

    def __init__(self, message: str, validation_type: str, details: dict | None = None):
        super().__init__(message, details)
        self.validation_type = validation_type


# =============================================================================
# Validation Functions
# =============================================================================

def clip_line(text: str, max_length: int = MAX_LINE_LENGTH) -> str:
    """
    Clip a console line to ``max_length`` characters.

    Classification must never fail, so oversized lines are shortened
    instead of rejected.
    """
    if len(text) > max_length:
        return text[:max_length]
    return text


def validate_filter_text(value: str | None, max_length: int = MAX_FILTER_LENGTH) -> str | None:
    """
    Validate an operator-supplied filter string.

    Args:
        value: Player substring or exclusion name
        max_length: Maximum allowed length

    Returns:
        The stripped value, or None when empty

    Raises:
        SecurityValidationError: If the value is too long or holds control characters
    """
    if value is None:
        return None

    value = value.strip()
    if not value:
        return None

    if len(value) > max_length:
        raise SecurityValidationError(
            f"Filter text too long ({len(value)} > {max_length})",
            validation_type="filter_length",
        )

    if any(ord(ch) < 32 for ch in value):
        raise SecurityValidationError(
            "Filter text contains control characters",
            validation_type="filter_charset",
            details={"preview": value[:20].encode("unicode_escape").decode()},
        )

    return value


def sanitize_csv_cell(value: str) -> str:
    """
    Sanitize a cell value for CSV output to prevent formula injection.

    Player names and chat text are attacker controlled, and spreadsheet
    applications execute cells starting with =, +, -, @, tab or CR.

    Args:
        value: The cell value to sanitize

    Returns:
        Sanitized value safe for CSV output
    """
    if value and value[0] in CSV_FORMULA_PREFIXES:
        return "'" + value
    return value
