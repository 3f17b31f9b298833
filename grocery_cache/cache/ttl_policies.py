"""
TTL configuration and category-to-lifetime mapping.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from grocery_cache.utils.helpers import safe_lower

from .core import CachedProductRecord


# Default lifetime when no rule matches (hours)
DEFAULT_TTL_HOURS = 24

# Ordered rules: first matching keyword wins (case-insensitive substring)
TTL_RULES: List[Tuple[Tuple[str, ...], int]] = [
    (("meat", "seafood"), 24),
    (("produce",), 48),
    (("dairy",), 72),
    (("frozen",), 168),             # 7 days
    (("pantry", "grocery"), 336),   # 14 days
]


def ttl_hours(category: Optional[str]) -> int:
    """
    Get the cache lifetime for a product category.

    Args:
        category: Upstream category string, may be None

    Returns:
        Lifetime in hours
    """
    category = safe_lower(category)
    for keywords, hours in TTL_RULES:
        if any(keyword in category for keyword in keywords):
            return hours
    return DEFAULT_TTL_HOURS


def ttl_for_products(products: Sequence[CachedProductRecord]) -> int:
    """
    Lifetime for a whole search result.

    Only the first product's category is consulted; search results are
    usually homogeneous.
    """
    if not products:
        return DEFAULT_TTL_HOURS
    return ttl_hours(products[0].category)


def expires_at_for(
    products: Sequence[CachedProductRecord],
    now: datetime,
) -> datetime:
    """Expiry timestamp for a result written at ``now``."""
    return now + timedelta(hours=ttl_for_products(products))
