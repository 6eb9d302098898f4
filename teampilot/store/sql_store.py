"""
SQLAlchemy-backed key-value store.
"""

import asyncio
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy import or_, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from .base import KeyValueStore
from ..config import DatabaseConfig
from ..database import create_engine, create_session_factory, init_database
from ..errors import StoreUnavailable
from ..models.kv_record import KeyValueRecord

logger = logging.getLogger(__name__)


class SQLKeyValueStore(KeyValueStore):
    """Key-value store on a single ``kv_records`` table.

    Session work is synchronous and runs in a worker thread so a slow
    database never blocks the event loop.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "SQLKeyValueStore":
        engine = create_engine(config)
        init_database(engine)
        return cls(create_session_factory(engine))

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except OperationalError as e:
            raise StoreUnavailable(f"Database unavailable: {e}") from e

    def _get(self, key: str) -> Optional[str]:
        now = datetime.utcnow()
        with self.session_factory() as session:
            record = session.get(KeyValueRecord, key)
            if record is None:
                return None
            if record.is_expired(now):
                session.delete(record)
                session.commit()
                return None
            return record.value

    def _set(self, key: str, value: str, ttl: Optional[int]) -> None:
        expires_at = datetime.utcnow() + timedelta(seconds=ttl) if ttl else None
        with self.session_factory() as session:
            record = session.get(KeyValueRecord, key)
            if record is None:
                session.add(KeyValueRecord(key=key, value=value, expires_at=expires_at))
            else:
                record.value = value
                record.expires_at = expires_at
            session.commit()

    def _delete(self, key: str) -> None:
        with self.session_factory() as session:
            session.query(KeyValueRecord).filter(KeyValueRecord.key == key).delete()
            session.commit()

    def _list_keys(self, prefix: str) -> List[str]:
        now = datetime.utcnow()
        with self.session_factory() as session:
            rows = session.query(KeyValueRecord.key).filter(
                KeyValueRecord.key.startswith(prefix, autoescape=True),
                or_(KeyValueRecord.expires_at.is_(None), KeyValueRecord.expires_at > now)
            ).order_by(KeyValueRecord.key.asc()).all()
            return [row[0] for row in rows]

    async def get(self, key: str) -> Optional[str]:
        return await self._run(self._get, key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        await self._run(self._set, key, value, ttl)

    async def delete(self, key: str) -> None:
        await self._run(self._delete, key)

    async def list_keys_by_prefix(self, prefix: str) -> List[str]:
        return await self._run(self._list_keys, prefix)

    def _ping(self) -> None:
        with self.session_factory() as session:
            session.execute(text("SELECT 1"))

    async def ping(self) -> bool:
        try:
            await self._run(self._ping)
            return True
        except StoreUnavailable as e:
            logger.error(f"Database health check failed: {e}")
            return False
