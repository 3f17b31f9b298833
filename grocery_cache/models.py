"""
Database models for the grocery product-search cache
SQLAlchemy ORM models for cache entries, warming stats and the account directory
"""
from sqlalchemy import (
    Boolean, Column, DateTime, Integer, JSON, String
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ProductSearchCache(Base):
    """
    Cached product search - one row per (location, normalized term)
    Written by warming, hit-counted by the read path, deleted by the sweeper
    """
    __tablename__ = "kroger_product_search_cache"

    id = Column(String, primary_key=True)  # "<location_id>_<encoded term>"
    location_id = Column(String, nullable=False, index=True)
    term = Column(String, nullable=False)
    normalized_term = Column(String, nullable=False)
    source_endpoint = Column(String, nullable=False)

    # Snapshot
    products = Column(JSON, nullable=False)
    total = Column(Integer, nullable=False, default=0)

    # Lifecycle
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    warmed_at = Column(DateTime, nullable=True)

    # Read-path bookkeeping
    hit_count = Column(Integer, nullable=False, default=0)
    last_accessed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<ProductSearchCache(id='{self.id}', total={self.total}, expires_at={self.expires_at})>"


class MealImageCache(Base):
    """
    Generated meal image cache - age-based retention, no per-row TTL
    """
    __tablename__ = "meal_image_cache"

    id = Column(String, primary_key=True)
    cache_key = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<MealImageCache(id='{self.id}', created_at={self.created_at})>"


class WarmingStats(Base):
    """
    Warming bookkeeping - one row per store location
    Updated in place on every warm, never deleted here
    """
    __tablename__ = "kroger_cache_warming_stats"

    location_id = Column(String, primary_key=True)
    last_warmed_at = Column(DateTime, nullable=True)
    items_warmed = Column(Integer, nullable=False, default=0)
    errors = Column(Integer, nullable=False, default=0)
    warmed_by = Column(String, nullable=True)  # on-demand only
    warm_type = Column(String, nullable=True)  # scheduled / on-demand

    def __repr__(self):
        return f"<WarmingStats(location_id='{self.location_id}', last_warmed_at={self.last_warmed_at})>"


class LinkedAccount(Base):
    """
    Account directory entry - source of candidate store locations
    """
    __tablename__ = "linked_accounts"

    id = Column(String, primary_key=True)
    kroger_linked = Column(Boolean, nullable=False, default=False)
    default_location_id = Column(String, nullable=True, index=True)

    def __repr__(self):
        return f"<LinkedAccount(id='{self.id}', default_location_id='{self.default_location_id}')>"
