"""
Redis-backed key-value store.
"""

from typing import List, Optional
import logging

import redis.asyncio as redis
from redis import exceptions as redis_exceptions

from .base import KeyValueStore
from ..errors import StoreUnavailable

logger = logging.getLogger(__name__)

UNAVAILABLE_ERRORS = (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError)


class RedisKeyValueStore(KeyValueStore):
    """Key-value store on top of redis.asyncio."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 5.0) -> "RedisKeyValueStore":
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except UNAVAILABLE_ERRORS as e:
            raise StoreUnavailable(f"Redis get failed for {key}: {e}") from e

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            await self.client.set(key, value, ex=ttl)
        except UNAVAILABLE_ERRORS as e:
            raise StoreUnavailable(f"Redis set failed for {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except UNAVAILABLE_ERRORS as e:
            raise StoreUnavailable(f"Redis delete failed for {key}: {e}") from e

    async def list_keys_by_prefix(self, prefix: str) -> List[str]:
        try:
            keys = [key async for key in self.client.scan_iter(match=f"{prefix}*")]
        except UNAVAILABLE_ERRORS as e:
            raise StoreUnavailable(f"Redis scan failed for {prefix}*: {e}") from e
        return sorted(keys)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis connection closed")
