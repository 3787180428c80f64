"""
SQLAlchemy models for the updates timeline.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, Index, String, Text

from portfolio.db.database import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UpdateEntry(Base):
    """
    A short "What's New" status update.
    Rows are written by an external tool; this service only reads them.
    """
    __tablename__ = "feeds"

    id = Column(String(64), primary_key=True)
    content = Column(Text, nullable=False)
    image_url = Column(String(1000))
    video_url = Column(String(1000))
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        Index('idx_feeds_created_at', 'created_at'),
    )

    def to_dict(self) -> dict[str, Any]:
        created_at = self.created_at
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "content": self.content,
            "imageUrl": self.image_url,
            "videoUrl": self.video_url,
            "createdAt": created_at.isoformat() if created_at else None,
        }

    def __repr__(self):
        return f"<UpdateEntry {self.id}>"
