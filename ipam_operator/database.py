"""Database connection and session management."""

from typing import Any, Dict, Generator

from sqlmodel import create_engine, Session, SQLModel

from ipam_operator.config import settings

# Import models so their tables are registered on the metadata
from ipam_operator import models  # noqa: F401


def engine_options(database_url: str) -> Dict[str, Any]:
    """Engine keyword arguments suited to the database backend."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


sync_engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    **engine_options(settings.DATABASE_URL),
)


def create_db_and_tables() -> None:
    """Create all database tables. Used for testing and initial setup."""
    SQLModel.metadata.create_all(sync_engine)


def get_session() -> Generator[Session, None, None]:
    """Get a synchronous database session."""
    with Session(sync_engine) as session:
        yield session
