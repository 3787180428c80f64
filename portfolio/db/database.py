"""
SQL database setup for the updates timeline.
The database is optional: without DATABASE_URL no engine is created.
"""

from functools import lru_cache
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

# Base class for models
Base = declarative_base()


@lru_cache(maxsize=None)
def get_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Needed for SQLite
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


@lru_cache(maxsize=None)
def get_session_factory(database_url: str) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


def get_db(request: Request) -> Iterator[Optional[Session]]:
    """Dependency that provides a database session, or None when unconfigured."""
    database_url = request.app.state.settings.database_url
    if not database_url:
        yield None
        return

    db = get_session_factory(database_url)()
    try:
        yield db
    finally:
        db.close()


def init_db(database_url: str) -> None:
    """Initialize database tables."""
    from portfolio.db import models  # noqa: F401 - Import models to register them
    Base.metadata.create_all(bind=get_engine(database_url))
