"""
Key-value record model backing the SQL store.
"""

from sqlalchemy import Column, String, DateTime, Text
from datetime import datetime

from .base import Base


class KeyValueRecord(Base):
    """A single JSON-serialized value addressed by its storage key."""

    __tablename__ = "kv_records"

    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)  # None means no TTL
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def __repr__(self):
        return f"<KeyValueRecord(key='{self.key}', expires_at={self.expires_at})>"
