"""
Shared helpers and small models used across the system.

Models:
    ValidationIssue: Machine readable reason a field was rejected
    FailedValidation: A single field/issue pair
    Metadata: Key/value row used for run state (e.g. last alert sweep)

Helpers:
    utc_now: Current time as an aware UTC datetime
    ensure_utc: Normalize a datetime to aware UTC
    parse_decimal: Strict parsing of decimal strings
    format_decimal: Canonical text form of a decimal
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

# Injected wherever "now" matters so tests can pin the clock.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive datetimes are assumed to already be in UTC.

    Args:
        value: Datetime to normalize.

    Returns:
        datetime: Aware datetime in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Accepted readings are bounded so that sums stay exact under the default
# 28-digit decimal context.
MAX_INTEGER_DIGITS = 12
MAX_FRACTION_DIGITS = 12


def parse_decimal(raw: str) -> Optional[Decimal]:
    """
    Parse a decimal string, rejecting NaN, infinities and out-of-range values.

    A value is in range when it has at most MAX_INTEGER_DIGITS digits before
    the decimal point and at most MAX_FRACTION_DIGITS significant digits
    after it. Trailing zeros do not count.

    Args:
        raw: Text to parse.

    Returns:
        Optional[Decimal]: Parsed value, or None if the text is not a
            finite decimal number in range.

    Example:
        >>> parse_decimal("3.781159")
        Decimal('3.781159')
        >>> parse_decimal("abc") is None
        True
        >>> parse_decimal("1e999999999") is None
        True
    """
    try:
        value = Decimal(raw.strip())
    except (InvalidOperation, AttributeError, ValueError):
        return None
    if not value.is_finite():
        return None
    if value.is_zero():
        return value

    _, digits, exponent = value.as_tuple()
    significant = "".join(map(str, digits)).rstrip("0")
    lowest_exponent = exponent + (len(digits) - len(significant))
    if value.adjusted() >= MAX_INTEGER_DIGITS or lowest_exponent < -MAX_FRACTION_DIGITS:
        return None
    return value


def format_decimal(value: Decimal) -> str:
    """
    Render a decimal without exponent or trailing zeros.

    Example:
        >>> format_decimal(Decimal("25.30"))
        '25.3'
        >>> format_decimal(Decimal("1E+1"))
        '10'
    """
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


class ValidationIssue(str, Enum):
    """Reasons a request field can be rejected."""

    INVALID = "Invalid"
    REQUIRED = "Required"
    TOO_FREQUENT = "TooFrequent"


class FailedValidation(BaseModel):
    """A rejected request field and the reason."""

    model_config = {"frozen": True, "extra": "forbid"}

    field: str = Field(..., description="Name of the offending field")
    issue: ValidationIssue = Field(..., description="Why it was rejected")


class Metadata(BaseModel):
    """Persisted key/value pair for run state."""

    model_config = {"frozen": True, "extra": "forbid"}

    key: str = Field(..., min_length=1)
    value: str
