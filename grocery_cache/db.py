"""
Database connection and setup
SQLAlchemy engine configured from settings.database_url
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from grocery_cache.models import Base

logger = logging.getLogger("db")

DATABASE_URL = settings.database_url


def _connect_args(url: str) -> dict:
    # Needed for SQLite when sessions cross threads (scheduler jobs)
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


# Create engine with echo=False (set to True for SQL debugging)
engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args(DATABASE_URL),
    echo=False,
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """
    Initialize database - create all tables
    Safe to call multiple times (won't recreate existing tables)
    """
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized at: {DATABASE_URL}")
