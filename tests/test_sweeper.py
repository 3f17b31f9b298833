"""
Tests for paged eviction of expired cache rows.
"""
from datetime import timedelta

import pytest

from grocery_cache.cache import CacheStore
from grocery_cache.models import MealImageCache, ProductSearchCache
from grocery_cache.sweeper import EvictionSweeper


def _add_entries(session_factory, now, count, expires_in, prefix="exp"):
    session = session_factory()
    try:
        session.add_all([
            ProductSearchCache(
                id=f"{prefix}_{i:05d}",
                location_id="01400943",
                term=f"{prefix} {i}",
                normalized_term=f"{prefix} {i}",
                source_endpoint="products.search",
                products=[],
                total=0,
                created_at=now,
                updated_at=now,
                expires_at=now + expires_in,
                warmed_at=now,
                hit_count=0,
                last_accessed_at=now,
            )
            for i in range(count)
        ])
        session.commit()
    finally:
        session.close()


def _add_images(session_factory, now, ages_in_days):
    session = session_factory()
    try:
        session.add_all([
            MealImageCache(
                id=f"img_{i}",
                cache_key=f"meal-{i}",
                image_url=f"https://img.example/{i}.png",
                created_at=now - timedelta(days=age),
            )
            for i, age in enumerate(ages_in_days)
        ])
        session.commit()
    finally:
        session.close()


class RecordingStore(CacheStore):
    """CacheStore that records batch sizes and can fail the Nth delete."""

    def __init__(self, session_factory, fail_on_batch=None):
        super().__init__(session_factory)
        self.batch_sizes = []
        self.fail_on_batch = fail_on_batch

    def delete_batch(self, model, ids):
        if len(self.batch_sizes) + 1 == self.fail_on_batch:
            raise RuntimeError("database unavailable")
        self.batch_sizes.append(len(ids))
        return super().delete_batch(model, ids)


# =============================================================================
# Product cache
# =============================================================================

class TestSweepProductCache:
    """Tests for sweep_product_cache."""

    def test_pages_through_expired_entries(self, session_factory, clock):
        _add_entries(session_factory, clock.now, 1200, timedelta(hours=-1))
        _add_entries(session_factory, clock.now, 3, timedelta(hours=5), prefix="live")
        store = RecordingStore(session_factory)

        result = EvictionSweeper(store, batch_size=500, clock=clock).sweep_product_cache()

        assert store.batch_sizes == [500, 500, 200]
        assert result.deleted == 1200
        assert result.batches == 3
        assert store.counts(now=clock.now)["entries"] == 3

    def test_exact_multiple_of_batch_size(self, session_factory, clock):
        _add_entries(session_factory, clock.now, 1000, timedelta(hours=-1))
        store = RecordingStore(session_factory)

        result = EvictionSweeper(store, batch_size=500, clock=clock).sweep_product_cache()

        assert result.deleted == 1000
        assert result.batches == 2
        assert store.counts(now=clock.now)["entries"] == 0

    def test_nothing_expired(self, session_factory, clock):
        _add_entries(session_factory, clock.now, 4, timedelta(hours=1))
        store = RecordingStore(session_factory)

        result = EvictionSweeper(store, batch_size=500, clock=clock).sweep_product_cache()

        assert result.deleted == 0
        assert result.batches == 0
        assert store.batch_sizes == []

    def test_entry_expiring_now_is_kept(self, session_factory, clock):
        _add_entries(session_factory, clock.now, 1, timedelta(0))
        store = RecordingStore(session_factory)

        assert EvictionSweeper(store, clock=clock).sweep_product_cache().deleted == 0

    def test_failed_batch_propagates(self, session_factory, clock):
        _add_entries(session_factory, clock.now, 12, timedelta(hours=-1))
        store = RecordingStore(session_factory, fail_on_batch=2)

        with pytest.raises(RuntimeError):
            EvictionSweeper(store, batch_size=5, clock=clock).sweep_product_cache()

        assert store.batch_sizes == [5]
        assert store.counts(now=clock.now)["entries"] == 7


# =============================================================================
# Image cache
# =============================================================================

class TestSweepImageCache:
    """Tests for sweep_image_cache."""

    def test_retention_window(self, session_factory, clock):
        _add_images(session_factory, clock.now, [31, 29, 45])
        store = RecordingStore(session_factory)

        result = EvictionSweeper(store, retention_days=30, clock=clock).sweep_image_cache()

        assert result.deleted == 2
        assert store.counts(now=clock.now)["image_entries"] == 1


class TestSweepAll:
    """Tests for sweep_all."""

    def test_reports_both_caches(self, session_factory, clock):
        _add_entries(session_factory, clock.now, 3, timedelta(hours=-2))
        _add_images(session_factory, clock.now, [40])
        store = RecordingStore(session_factory)

        deleted = EvictionSweeper(store, clock=clock).sweep_all()

        assert deleted == {"krogerCache": 3, "mealImageCache": 1}
