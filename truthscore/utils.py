"""
Utility functions for TruthScore.

This module provides helper functions for common operations
like numeric coercion, address handling and display formatting.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Safely convert a value to a finite float.

    Args:
        value: Value to convert.
        default: Default value if conversion fails.

    Returns:
        Float value or default.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if result != result or result in (float("inf"), float("-inf")):
        return default
    return result


def safe_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """
    Safely convert a value to Decimal.

    Args:
        value: Value to convert.
        default: Default value if conversion fails.

    Returns:
        Decimal value or default.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default
    if not result.is_finite():
        return default
    return result


def safe_count(value: Any) -> int:
    """
    Coerce a bet counter to a non-negative integer.

    Negative, fractional-garbage and non-numeric values become 0.
    """
    number = safe_float(value, 0.0)
    if number < 0:
        return 0
    return int(number)


def normalize_address(address: str) -> str:
    """Identity key for a wallet: stripped and lower-cased."""
    return address.strip().lower()


def parse_timestamp(
    value: Union[str, int, float, datetime, None],
    default: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Parse various timestamp formats to an aware UTC datetime.

    Handles:
    - datetime objects (naive values are taken as UTC)
    - ISO format strings
    - Unix timestamps (seconds or milliseconds)

    Args:
        value: Timestamp value to parse.
        default: Default value if parsing fails.

    Returns:
        Parsed datetime or default.
    """
    if value is None or value == "":
        return default

    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, str) and safe_float(value, default=-1.0) < 0:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        else:
            ts = float(value)
            if ts > 1e12:  # Milliseconds
                ts = ts / 1000
            dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    except (ValueError, TypeError, OSError, OverflowError):
        return default

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def truncate_address(address: str, length: int = 6) -> str:
    """
    Truncate a wallet address for display.

    Args:
        address: Full wallet address.
        length: Number of characters to keep at the front.

    Returns:
        Truncated address like "0x1234...abcd".
    """
    if not address or len(address) <= length + 7:
        return address
    return f"{address[:length]}...{address[-4:]}"


def format_volume(volume: Union[float, Decimal]) -> str:
    """
    Format trading volume for display.

    Args:
        volume: Volume in venue units.

    Returns:
        Formatted string like "$1.23M" or "$123.45K".
    """
    volume = float(volume)
    if volume >= 1_000_000:
        return f"${volume / 1_000_000:.2f}M"
    elif volume >= 1_000:
        return f"${volume / 1_000:.2f}K"
    else:
        return f"${volume:.2f}"
