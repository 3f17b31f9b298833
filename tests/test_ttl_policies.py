"""
Tests for category-based cache lifetimes.
"""
from datetime import datetime, timedelta

import pytest

from grocery_cache.cache import (
    DEFAULT_TTL_HOURS,
    CachedProductRecord,
    expires_at_for,
    ttl_for_products,
    ttl_hours,
)
from grocery_cache.product_client import ProductSearchClient

from fakes import FakeHttp, raw_product, search_ok


def _record(category):
    return CachedProductRecord(product_id="1", upc="1", description="x", category=category)


# =============================================================================
# Policy table
# =============================================================================

class TestTtlHours:
    """Tests for ttl_hours."""

    @pytest.mark.parametrize("category,expected", [
        ("Meat & Seafood", 24),
        ("Fresh Seafood", 24),
        ("Produce", 48),
        ("Dairy", 72),
        ("Frozen", 168),
        ("Pantry", 336),
        ("Grocery", 336),
        ("Beverages", 24),
        ("", 24),
        (None, 24),
    ])
    def test_category_lifetimes(self, category, expected):
        assert ttl_hours(category) == expected

    def test_match_is_case_insensitive_substring(self):
        assert ttl_hours("DAIRY & EGGS") == 72
        assert ttl_hours("frozen foods") == 168
        assert ttl_hours("Natural & Organic Produce") == 48

    def test_first_rule_wins(self):
        """A category hitting several keywords gets the earliest rule."""
        assert ttl_hours("Frozen Meat") == 24
        assert ttl_hours("Dairy Grocery") == 72

    def test_default(self):
        assert DEFAULT_TTL_HOURS == 24


class TestResultLifetime:
    """Only the first product of a result decides the lifetime."""

    def test_first_product_category_is_used(self):
        products = [_record("Pantry"), _record("Meat")]
        assert ttl_for_products(products) == 336

    def test_empty_result_uses_default(self):
        assert ttl_for_products([]) == DEFAULT_TTL_HOURS

    def test_expires_at(self):
        now = datetime(2026, 1, 1)
        assert expires_at_for([_record("Produce")], now) == now + timedelta(hours=48)


# =============================================================================
# End to end through a warm
# =============================================================================

@pytest.mark.parametrize("category,hours", [
    ("Dairy", 72),
    ("Meat", 24),
    ("Seafood", 24),
    ("Produce", 48),
    ("Frozen", 168),
    ("Pantry", 336),
    ("Grocery", 336),
    ("Household", 24),
])
def test_warmed_entry_lifetime_matches_category(store, clock, category, hours):
    """expiresAt - createdAt equals the category lifetime."""
    http = FakeHttp(lambda call: search_ok(raw_product(category=category)))
    client = ProductSearchClient(store, http=http, clock=clock)

    assert client.search_and_cache("tok", "01400943", "milk") is True

    entry = store.get_entry("01400943", "milk")
    assert entry.expires_at - entry.created_at == timedelta(hours=hours)
    assert entry.expires_at > entry.created_at
