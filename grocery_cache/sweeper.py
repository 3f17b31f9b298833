"""
Eviction sweeper for expired and aged cache rows.

Paged deletion: select a page of matching keys, delete that page in one
transaction, repeat until a short page signals there is nothing left.
Memory and transaction size stay bounded however much has expired.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from config.settings import settings
from grocery_cache.cache import CacheStore
from grocery_cache.models import MealImageCache, ProductSearchCache
from grocery_cache.utils.helpers import utcnow

logger = logging.getLogger("cache.sweeper")


@dataclass
class SweepResult:
    """Rows deleted and batch deletes issued by one sweep."""
    deleted: int = 0
    batches: int = 0


class EvictionSweeper:
    """
    Deletes expired product-search entries and aged image-cache entries.

    Safe to run next to warming: it only deletes rows that matched its
    own page query, and warming only upserts.
    """

    def __init__(
        self,
        store: CacheStore,
        batch_size: Optional[int] = None,
        retention_days: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self.batch_size = batch_size or settings.sweep_batch_size
        self.retention_days = retention_days or settings.image_cache_retention_days
        self._clock = clock

    def sweep(self, model, criterion, label: str = "") -> SweepResult:
        """
        Delete every row of ``model`` matching ``criterion``, page by page.

        A failed batch delete propagates; earlier batches stay deleted.
        """
        label = label or model.__tablename__
        result = SweepResult()

        while True:
            ids = self._store.select_page(model, criterion, self.batch_size)
            if not ids:
                break

            self._store.delete_batch(model, ids)
            result.deleted += len(ids)
            result.batches += 1
            logger.info(f"Deleted batch of {len(ids)} expired {label} rows")

            if len(ids) < self.batch_size:
                break

        if result.deleted:
            logger.info(f"Cleanup complete: deleted {result.deleted} expired {label} rows")
        else:
            logger.info(f"Cleanup complete: no expired {label} rows to delete")
        return result

    def sweep_product_cache(self, now: Optional[datetime] = None) -> SweepResult:
        """Delete product-search entries with expires_at < now."""
        now = now or self._clock()
        logger.info(f"Starting product cache cleanup at {now.isoformat()}")
        return self.sweep(
            ProductSearchCache,
            ProductSearchCache.expires_at < now,
            label="product cache",
        )

    def sweep_image_cache(self, now: Optional[datetime] = None) -> SweepResult:
        """Delete image-cache entries created before the retention window."""
        now = now or self._clock()
        cutoff = now - timedelta(days=self.retention_days)
        logger.info(f"Starting meal image cache cleanup (cutoff {cutoff.isoformat()})")
        return self.sweep(
            MealImageCache,
            MealImageCache.created_at < cutoff,
            label="meal image cache",
        )

    def sweep_all(self) -> Dict[str, int]:
        """Run both sweeps against one snapshot of now; deleted counts by cache."""
        now = self._clock()
        return {
            "krogerCache": self.sweep_product_cache(now).deleted,
            "mealImageCache": self.sweep_image_cache(now).deleted,
        }
