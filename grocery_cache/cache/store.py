"""
Persistent cache store backed by SQLAlchemy.

Handles entry upserts, the cache-aside read contract, warming stats
and the paged-deletion primitives used by the sweeper.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy import case, delete, func, or_, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from grocery_cache.models import (
    LinkedAccount,
    MealImageCache,
    ProductSearchCache,
    WarmingStats,
)
from grocery_cache.utils.helpers import utcnow

from .core import (
    CacheEntry,
    CacheKey,
    CachedProductRecord,
    WarmingStatsRecord,
    WarmType,
)

logger = logging.getLogger("cache.store")

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_INSERT_BY_DIALECT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

# Fields a warming write owns; everything else survives an upsert
_ENTRY_OWNED_FIELDS = (
    "location_id",
    "term",
    "normalized_term",
    "source_endpoint",
    "products",
    "total",
    "created_at",
    "updated_at",
    "expires_at",
    "warmed_at",
)


def _primary_key(model):
    return model.__mapper__.primary_key[0]


class CacheStore:
    """
    Keyed store for product-search cache entries and warming stats.

    Every write is a single-row upsert or a single batch delete, each in
    its own transaction, so a run cut short leaves valid state behind.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Session scope: commit on success, roll back and re-raise on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _insert(self, session: Session, model):
        dialect = session.get_bind().dialect.name
        insert_fn = _INSERT_BY_DIALECT.get(dialect)
        if insert_fn is None:
            raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")
        return insert_fn(model)

    # =========================================================================
    # Product search entries
    # =========================================================================

    def upsert_entry(self, entry: CacheEntry) -> None:
        """
        Insert or partially overwrite the entry for ``entry.key``.

        hit_count starts at 0 and last_accessed_at at the write time, but
        only when the row is created; updates leave both untouched.
        """
        values = {
            "id": entry.entry_id,
            "location_id": entry.location_id,
            "term": entry.term,
            "normalized_term": entry.normalized_term,
            "source_endpoint": entry.source_endpoint,
            "products": [product.to_dict() for product in entry.products],
            "total": entry.total,
            "created_at": entry.created_at,
            "updated_at": entry.updated_at,
            "expires_at": entry.expires_at,
            "warmed_at": entry.warmed_at,
            "hit_count": 0,
            "last_accessed_at": entry.created_at,
        }
        with self._session() as session:
            stmt = self._insert(session, ProductSearchCache).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ProductSearchCache.id],
                set_={name: stmt.excluded[name] for name in _ENTRY_OWNED_FIELDS},
            )
            session.execute(stmt)

        logger.debug(f"Upserted cache entry {entry.entry_id} ({entry.total} products)")

    def get_entry(self, location_id: str, term: str) -> Optional[CacheEntry]:
        """Fetch an entry regardless of expiry, without counting a hit."""
        key = CacheKey.for_term(location_id, term)
        with self._session() as session:
            row = session.get(ProductSearchCache, key.entry_id)
            return self._to_entry(row) if row else None

    def lookup(
        self,
        location_id: str,
        term: str,
        now: Optional[datetime] = None,
    ) -> Optional[CacheEntry]:
        """
        Cache-aside read: the live entry for (location, term) or None.

        A hit increments hit_count and stamps last_accessed_at.
        """
        now = now or utcnow()
        key = CacheKey.for_term(location_id, term)

        with self._session() as session:
            row = session.get(ProductSearchCache, key.entry_id)
            if row is None:
                logger.info(f"CACHE MISS: {key.entry_id}")
                return None
            if self._to_entry(row).is_expired(now):
                logger.info(f"CACHE EXPIRED: {key.entry_id}")
                return None

            session.execute(
                update(ProductSearchCache)
                .where(ProductSearchCache.id == key.entry_id)
                .values(
                    hit_count=ProductSearchCache.hit_count + 1,
                    last_accessed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            session.refresh(row)
            logger.debug(f"CACHE HIT: {key.entry_id} [hits={row.hit_count}]")
            return self._to_entry(row)

    @staticmethod
    def _to_entry(row: ProductSearchCache) -> CacheEntry:
        return CacheEntry(
            location_id=row.location_id,
            term=row.term,
            normalized_term=row.normalized_term,
            source_endpoint=row.source_endpoint,
            products=[CachedProductRecord.from_dict(p) for p in row.products or []],
            total=row.total,
            created_at=row.created_at,
            updated_at=row.updated_at,
            expires_at=row.expires_at,
            warmed_at=row.warmed_at,
            hit_count=row.hit_count,
            last_accessed_at=row.last_accessed_at,
        )

    # =========================================================================
    # Warming stats
    # =========================================================================

    def get_warming_stats(self, location_id: str) -> Optional[WarmingStatsRecord]:
        """Warming stats for a location, None if it was never warmed."""
        with self._session() as session:
            row = session.get(WarmingStats, location_id)
            if row is None:
                return None
            return WarmingStatsRecord(
                location_id=row.location_id,
                last_warmed_at=row.last_warmed_at,
                items_warmed=row.items_warmed,
                errors=row.errors,
                warmed_by=row.warmed_by,
                warm_type=WarmType(row.warm_type) if row.warm_type else None,
            )

    def record_warming(
        self,
        location_id: str,
        warmed_at: datetime,
        items_warmed: int,
        errors: int,
        warm_type: Optional[WarmType] = None,
        warmed_by: Optional[str] = None,
    ) -> None:
        """
        Upsert the stats for a location after a warm.

        warm_type and warmed_by are only written when given. last_warmed_at
        never moves backwards, even if an older run finishes last.
        """
        values: Dict[str, Any] = {
            "location_id": location_id,
            "last_warmed_at": warmed_at,
            "items_warmed": items_warmed,
            "errors": errors,
        }
        if warm_type is not None:
            values["warm_type"] = warm_type.value
        if warmed_by is not None:
            values["warmed_by"] = warmed_by

        with self._session() as session:
            stmt = self._insert(session, WarmingStats).values(**values)
            set_ = {
                name: stmt.excluded[name]
                for name in values
                if name not in ("location_id", "last_warmed_at")
            }
            set_["last_warmed_at"] = case(
                (
                    or_(
                        WarmingStats.last_warmed_at.is_(None),
                        stmt.excluded.last_warmed_at > WarmingStats.last_warmed_at,
                    ),
                    stmt.excluded.last_warmed_at,
                ),
                else_=WarmingStats.last_warmed_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[WarmingStats.location_id],
                set_=set_,
            )
            session.execute(stmt)

        logger.debug(
            f"Recorded warming for {location_id}: "
            f"{items_warmed} warmed, {errors} errors, type={values.get('warm_type')}"
        )

    # =========================================================================
    # Location directory
    # =========================================================================

    def active_location_ids(self, scan_limit: int) -> List[str]:
        """
        Distinct store locations configured by linked accounts.

        At most ``scan_limit`` accounts are scanned; ids keep first-seen order.
        """
        with self._session() as session:
            rows = (
                session.query(LinkedAccount.default_location_id)
                .filter(
                    LinkedAccount.kroger_linked.is_(True),
                    LinkedAccount.default_location_id.isnot(None),
                )
                .order_by(LinkedAccount.id)
                .limit(scan_limit)
                .all()
            )
        return list(dict.fromkeys(row[0] for row in rows if row[0]))

    # =========================================================================
    # Paged deletion
    # =========================================================================

    def select_page(self, model, criterion, limit: int) -> List[str]:
        """Primary keys of up to ``limit`` rows of ``model`` matching ``criterion``."""
        pk = _primary_key(model)
        with self._session() as session:
            rows = (
                session.query(pk)
                .filter(criterion)
                .order_by(pk)
                .limit(limit)
                .all()
            )
        return [row[0] for row in rows]

    def delete_batch(self, model, ids: List[str]) -> int:
        """Delete the given rows in one transaction; all or nothing."""
        if not ids:
            return 0
        pk = _primary_key(model)
        with self._session() as session:
            result = session.execute(delete(model).where(pk.in_(ids)))
            return result.rowcount

    # =========================================================================
    # Stats
    # =========================================================================

    def counts(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Row counts for the cache stats endpoint."""
        now = now or utcnow()
        with self._session() as session:
            return {
                "entries": session.query(func.count(ProductSearchCache.id)).scalar(),
                "expired_entries": (
                    session.query(func.count(ProductSearchCache.id))
                    .filter(ProductSearchCache.expires_at < now)
                    .scalar()
                ),
                "image_entries": session.query(func.count(MealImageCache.id)).scalar(),
                "warmed_locations": session.query(func.count(WarmingStats.location_id)).scalar(),
            }
