"""SQLAlchemy engine."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from imtihon.core.config import settings


def create_db_engine(database_url: str | None = None) -> Engine:
    url = database_url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        # Engine work is pushed to worker threads, so one connection crosses threads
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


engine = create_db_engine()
