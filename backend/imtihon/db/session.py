"""Session factory and the per-request session dependency."""

from collections.abc import Iterator

from sqlalchemy.orm import Session, sessionmaker

from imtihon.db.engine import engine

# Services keep working with rows after commit when building responses
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    with SessionLocal() as session:
        yield session
