"""
Abstract key-value store and backend factory.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from ..config import Config

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract base class for key-value store backends.

    Backends raise ``StoreUnavailable`` when the underlying store cannot be
    reached; degrading to empty reads is the caller's concern.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get the raw value stored under key, or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store value under key, expiring after ttl seconds when given."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key if present."""
        pass

    @abstractmethod
    async def list_keys_by_prefix(self, prefix: str) -> List[str]:
        """List keys starting with prefix, sorted ascending."""
        pass

    async def ping(self) -> bool:
        """Check that the store is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        pass


class StoreFactory:
    """Factory for creating key-value stores."""

    @staticmethod
    def create_store(config: Config) -> KeyValueStore:
        """Create a key-value store based on the configured backend."""
        backend = config.store.backend.lower()
        if backend == "redis":
            from .redis_store import RedisKeyValueStore
            return RedisKeyValueStore.from_url(config.store.redis_url, socket_timeout=config.store.socket_timeout)
        elif backend == "sql":
            from .sql_store import SQLKeyValueStore
            return SQLKeyValueStore.from_config(config.database)
        else:
            raise ValueError(f"Unsupported store backend: {backend}")
