"""
Database session and engine for durable client state.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from taskhub.config import settings
from taskhub.db.base import Base


def make_engine(url: str) -> Engine:
    """SQLite (the default) is touched from scheduler threads, so allow cross-thread use."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, pool_pre_ping=True)
    return create_engine(
        url,
        pool_size=2,
        max_overflow=2,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
    )


engine = make_engine(settings.storage_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create client tables if missing."""
    import taskhub.models  # noqa: F401  (register tables on Base.metadata)

    Base.metadata.create_all(bind=bind or engine)
