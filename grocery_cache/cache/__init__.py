"""
Product-search cache: entry types, category TTL policy and persistent store.
"""
from .core import (
    CacheEntry,
    CacheKey,
    CachedProductRecord,
    FulfillmentFlags,
    WarmCounts,
    WarmingStatsRecord,
    WarmType,
    normalize_term,
    encode_term,
)
from .ttl_policies import (
    DEFAULT_TTL_HOURS,
    TTL_RULES,
    expires_at_for,
    ttl_for_products,
    ttl_hours,
)
from .store import CacheStore

__all__ = [
    # Core types
    "CacheEntry",
    "CacheKey",
    "CachedProductRecord",
    "FulfillmentFlags",
    "WarmCounts",
    "WarmingStatsRecord",
    "WarmType",
    "normalize_term",
    "encode_term",
    # TTL policies
    "DEFAULT_TTL_HOURS",
    "TTL_RULES",
    "expires_at_for",
    "ttl_for_products",
    "ttl_hours",
    # Store
    "CacheStore",
]
