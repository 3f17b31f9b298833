"""
Utility helper functions for safe data handling.
"""
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def safe_str(value: Any, default: Optional[str] = None) -> Optional[str]:
    """
    Safely convert value to string, handling None.

    Args:
        value: Any value to convert
        default: Returned if value is None

    Returns:
        String representation or default
    """
    if value is None:
        return default
    return str(value)


def safe_lower(value: Any) -> str:
    """
    Safely lowercase a value, handling None.

    Args:
        value: Any value to lowercase

    Returns:
        Lowercased string or empty string if None
    """
    if value is None:
        return ""
    return str(value).lower()


def safe_float(value: Any) -> Optional[float]:
    """
    Safely convert value to float, handling None and invalid values.

    Booleans are rejected: upstream never encodes a price as true/false.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def safe_bool(value: Any) -> Optional[bool]:
    """Pass booleans through, map anything else to None."""
    if isinstance(value, bool):
        return value
    return None
