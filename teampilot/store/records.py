"""
JSON record adapter over a key-value store.

Reads degrade to None / empty lists and writes to no-ops when the store is
unavailable, so a store outage never fails a turn.
"""

from typing import List, Optional, Tuple, Type, TypeVar
import logging

from pydantic import BaseModel, ValidationError

from .base import KeyValueStore
from ..errors import StoreUnavailable

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def record_key(record_type: str, team_id: str, *parts: str) -> str:
    """Build a storage key of the form ``{recordType}:{teamId}[:{userId}][:{recordId}]``."""
    return ":".join([record_type, team_id, *parts])


class RecordStore:
    """Typed JSON persistence for pydantic records."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def get_raw(self, key: str) -> Optional[str]:
        try:
            return await self.store.get(key)
        except StoreUnavailable as e:
            logger.warning(f"Store unavailable, treating {key} as missing: {e}")
            return None

    async def set_raw(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        try:
            await self.store.set(key, value, ttl)
            return True
        except StoreUnavailable as e:
            logger.warning(f"Store unavailable, dropping write to {key}: {e}")
            return False

    async def get_record(self, key: str, model: Type[RecordT]) -> Optional[RecordT]:
        data = await self.get_raw(key)
        if data is None:
            return None
        try:
            return model.model_validate_json(data)
        except ValidationError as e:
            logger.error(f"Invalid {model.__name__} stored under {key}: {e}")
            return None

    async def save_record(self, key: str, record: BaseModel, ttl: Optional[int] = None) -> bool:
        return await self.set_raw(key, record.model_dump_json(), ttl)

    async def delete(self, key: str) -> bool:
        try:
            await self.store.delete(key)
            return True
        except StoreUnavailable as e:
            logger.warning(f"Store unavailable, dropping delete of {key}: {e}")
            return False

    async def list_keys(self, prefix: str) -> List[str]:
        try:
            return await self.store.list_keys_by_prefix(prefix)
        except StoreUnavailable as e:
            logger.warning(f"Store unavailable, listing {prefix}* as empty: {e}")
            return []

    async def list_records(self, prefix: str, model: Type[RecordT]) -> List[Tuple[str, RecordT]]:
        """Load every record under prefix, in ascending key order."""
        records = []
        for key in await self.list_keys(prefix):
            record = await self.get_record(key, model)
            if record is not None:
                records.append((key, record))
        return records

    async def exists(self, key: str) -> bool:
        return await self.get_raw(key) is not None
