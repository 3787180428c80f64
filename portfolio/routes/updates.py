"""
"What's New" timeline route.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portfolio.db.database import get_db
from portfolio.services.updates import list_updates

router = APIRouter(prefix="/api/updates", tags=["updates"])


@router.get("")
async def updates(db: Optional[Session] = Depends(get_db)):
    """Updates newest first; empty when no database is configured."""
    entries = list_updates(db)
    return {"updates": [entry.to_dict() for entry in entries]}
