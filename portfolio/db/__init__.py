"""Database package for the updates timeline."""

from portfolio.db.database import Base, get_db, init_db
from portfolio.db.models import UpdateEntry

__all__ = ["get_db", "init_db", "Base", "UpdateEntry"]
