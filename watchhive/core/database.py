"""Database setup for WatchHive using SQLModel."""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine
from watchhive.core.config import get_settings
from watchhive.core.errors import StoreError

logger = logging.getLogger(__name__)

settings = get_settings()

# Create engine
engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    connect_args={"check_same_thread": False}  # Needed for SQLite
    if settings.database_url.startswith("sqlite")
    else {},
)


def create_db_and_tables():
    """Create all database tables."""
    # Import models to register them
    from watchhive.models import library, lists, progress  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Dependency that provides a database session."""
    with Session(engine, expire_on_commit=False) as session:
        yield session


@contextmanager
def unit_of_work(session: Session):
    """Commit on success, roll back on any failure.

    SQLAlchemy failures surface as ``StoreError``; everything else is re-raised.
    """
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Database operation failed: %s", exc, exc_info=exc)
        raise StoreError("Database operation failed", exc) from exc
    except Exception:
        session.rollback()
        raise
