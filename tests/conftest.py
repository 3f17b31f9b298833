"""
Shared fixtures: in-memory SQLite store, fixed clock, fast retries.
"""
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import settings
from grocery_cache.cache import CacheStore
from grocery_cache.models import Base

from fakes import FakeClock


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return CacheStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 12, 0, 0))


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """No backoff sleeps between retried upstream calls."""
    monkeypatch.setattr(settings, "search_retry_base_delay_seconds", 0)
    monkeypatch.setattr(settings, "search_retry_attempts", 3)
