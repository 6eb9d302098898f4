"""
Tests for the key-value store backends and the JSON record adapter.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

from redis import exceptions as redis_exceptions

from teampilot.config import Config, LLMConfig, SlackConfig, StoreConfig
from teampilot.errors import StoreUnavailable
from teampilot.models.kv_record import KeyValueRecord
from teampilot.models.records import UserBehaviorProfile
from teampilot.store import RecordStore, StoreFactory, record_key
from teampilot.store.base import KeyValueStore
from teampilot.store.redis_store import RedisKeyValueStore
from teampilot.store.sql_store import SQLKeyValueStore


def test_record_key_layout():
    """Test storage key construction."""
    assert record_key("canned_response", "T1", "abc") == "canned_response:T1:abc"
    assert record_key("behavior_profile", "T1", "U1") == "behavior_profile:T1:U1"
    assert record_key("thread_response_count", "T1", "C1", "1700000000.000100") == "thread_response_count:T1:C1:1700000000.000100"
    assert record_key("credentials", "T1", "") == "credentials:T1:"


@pytest.mark.asyncio
async def test_sql_store_get_set_delete(kv_store):
    """Test basic SQL store operations."""
    assert await kv_store.get("missing") is None

    await kv_store.set("a:1", "one")
    assert await kv_store.get("a:1") == "one"

    await kv_store.set("a:1", "uno")
    assert await kv_store.get("a:1") == "uno"

    await kv_store.delete("a:1")
    assert await kv_store.get("a:1") is None


@pytest.mark.asyncio
async def test_sql_store_lists_keys_by_prefix_in_order(kv_store):
    """Test prefix listing is ascending and does not leak other prefixes."""
    await kv_store.set("canned_response:T1:b", "{}")
    await kv_store.set("canned_response:T1:a", "{}")
    await kv_store.set("canned_response:T2:c", "{}")
    await kv_store.set("channel_monitor:T1:C1", "{}")

    keys = await kv_store.list_keys_by_prefix("canned_response:T1:")
    assert keys == ["canned_response:T1:a", "canned_response:T1:b"]


@pytest.mark.asyncio
async def test_sql_store_prefix_wildcards_are_literal(kv_store):
    """Test that LIKE wildcards in a prefix are escaped."""
    await kv_store.set("team_%:x", "1")
    await kv_store.set("team_ab:x", "2")

    assert await kv_store.list_keys_by_prefix("team_%") == ["team_%:x"]


@pytest.mark.asyncio
async def test_sql_store_hides_expired_records(kv_store):
    """Test that expired records are neither returned nor listed."""
    await kv_store.set("session:T1:U1", "value", ttl=3600)
    assert await kv_store.get("session:T1:U1") == "value"

    with kv_store.session_factory() as session:
        record = session.get(KeyValueRecord, "session:T1:U1")
        record.expires_at = datetime.utcnow() - timedelta(seconds=1)
        session.commit()

    assert await kv_store.list_keys_by_prefix("session:") == []
    assert await kv_store.get("session:T1:U1") is None


@pytest.mark.asyncio
async def test_redis_store_maps_connection_errors():
    """Test that Redis connection failures surface as StoreUnavailable."""
    client = Mock()
    client.get = AsyncMock(side_effect=redis_exceptions.ConnectionError("refused"))
    client.set = AsyncMock(side_effect=redis_exceptions.TimeoutError("timeout"))
    store = RedisKeyValueStore(client)

    with pytest.raises(StoreUnavailable):
        await store.get("key")
    with pytest.raises(StoreUnavailable):
        await store.set("key", "value", 10)


@pytest.mark.asyncio
async def test_redis_store_set_passes_ttl():
    """Test that the TTL is passed to Redis as seconds."""
    client = Mock()
    client.set = AsyncMock(return_value=True)
    store = RedisKeyValueStore(client)

    await store.set("credentials:T1:jira", "{}", 7776000)

    client.set.assert_awaited_once_with("credentials:T1:jira", "{}", ex=7776000)


@pytest.mark.asyncio
async def test_redis_store_lists_keys_sorted():
    """Test that scanned keys are returned in ascending order."""
    async def scan_iter(match):
        assert match == "canned_response:T1:*"
        for key in ["canned_response:T1:b", "canned_response:T1:a"]:
            yield key

    client = Mock()
    client.scan_iter = scan_iter
    store = RedisKeyValueStore(client)

    assert await store.list_keys_by_prefix("canned_response:T1:") == ["canned_response:T1:a", "canned_response:T1:b"]


def test_store_factory_backends(test_config):
    """Test store backend selection."""
    assert isinstance(StoreFactory.create_store(test_config), SQLKeyValueStore)

    redis_config = Config(
        llm=LLMConfig(api_key="key"),
        slack=SlackConfig(bot_token="xoxb"),
        store=StoreConfig(backend="redis", redis_url="redis://localhost:6379/1")
    )
    assert isinstance(StoreFactory.create_store(redis_config), RedisKeyValueStore)


@pytest.mark.asyncio
async def test_record_store_round_trip(records):
    """Test saving and reading a typed record."""
    profile = UserBehaviorProfile(tone="friendly", business_type="retail", company_name="Acme")

    assert await records.save_record("behavior_profile:T1:U1", profile, ttl=60) is True
    assert await records.get_record("behavior_profile:T1:U1", UserBehaviorProfile) == profile
    assert await records.exists("behavior_profile:T1:U1") is True


@pytest.mark.asyncio
async def test_record_store_ignores_invalid_json(records, kv_store):
    """Test that a malformed stored record reads as missing."""
    await kv_store.set("behavior_profile:T1:U1", "not json")

    assert await records.get_record("behavior_profile:T1:U1", UserBehaviorProfile) is None


@pytest.mark.asyncio
async def test_record_store_degrades_when_store_unavailable():
    """Test that reads return empty values and writes report failure without raising."""
    store = Mock(spec=KeyValueStore)
    store.get = AsyncMock(side_effect=StoreUnavailable("down"))
    store.set = AsyncMock(side_effect=StoreUnavailable("down"))
    store.delete = AsyncMock(side_effect=StoreUnavailable("down"))
    store.list_keys_by_prefix = AsyncMock(side_effect=StoreUnavailable("down"))
    records = RecordStore(store)

    assert await records.get_record("behavior_profile:T1:U1", UserBehaviorProfile) is None
    assert await records.save_record("behavior_profile:T1:U1", UserBehaviorProfile()) is False
    assert await records.delete("behavior_profile:T1:U1") is False
    assert await records.list_records("behavior_profile:T1:", UserBehaviorProfile) == []


@pytest.mark.asyncio
async def test_sql_store_ping(kv_store):
    """Test the SQL health check reaches the database."""
    assert await kv_store.ping() is True


@pytest.mark.asyncio
async def test_redis_store_ping_failure():
    client = Mock()
    client.ping = AsyncMock(side_effect=redis_exceptions.ConnectionError("refused"))

    assert await RedisKeyValueStore(client).ping() is False
