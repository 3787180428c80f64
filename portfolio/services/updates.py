"""
Updates timeline service.
Reads the "What's New" entries; a broken database yields an empty timeline.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio.db.models import UpdateEntry

logger = logging.getLogger(__name__)


def list_updates(db: Optional[Session], limit: int = 100) -> list[UpdateEntry]:
    """List updates newest first."""
    if db is None:
        return []

    try:
        return (
            db.query(UpdateEntry)
            .order_by(UpdateEntry.created_at.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error(f"Failed to fetch updates: {exc}")
        return []
