"""Tests unitaires du stockage des tentatives"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from medidash.confirmation.models import AttemptRecord
from medidash.confirmation.storage import (
    ATTEMPTS_KEY,
    LAST_ATTEMPT_KEY,
    AttemptTracker,
    MemoryAttemptStore,
    RedisAttemptStore,
)

from tests.helpers import HOUR_MS, NOW_MS


@pytest.mark.unit
class TestMemoryAttemptStore:

    @pytest.mark.asyncio
    async def test_empty_store(self):
        assert await MemoryAttemptStore().load() is None

    @pytest.mark.asyncio
    async def test_values_use_client_keys(self):
        store = MemoryAttemptStore()

        await store.save(AttemptRecord(attempt_count=3, last_attempt_timestamp=NOW_MS))

        assert store.values == {ATTEMPTS_KEY: "3", LAST_ATTEMPT_KEY: str(NOW_MS)}

    @pytest.mark.asyncio
    async def test_clear_removes_both_keys(self):
        store = MemoryAttemptStore(AttemptRecord(attempt_count=2, last_attempt_timestamp=NOW_MS))

        await store.clear()

        assert store.values == {}
        assert await store.load() is None

    @pytest.mark.asyncio
    async def test_corrupted_counter_reads_as_zero(self):
        store = MemoryAttemptStore()
        store.values = {ATTEMPTS_KEY: "not-a-number", LAST_ATTEMPT_KEY: str(NOW_MS)}

        record = await store.load()

        assert record == AttemptRecord(attempt_count=0, last_attempt_timestamp=NOW_MS)


@pytest.mark.unit
class TestAttemptTracker:

    @pytest.mark.asyncio
    async def test_first_failure_creates_record(self):
        store = MemoryAttemptStore()
        tracker = AttemptTracker(store)

        record = await tracker.record_failure(NOW_MS)

        assert record == AttemptRecord(attempt_count=1, last_attempt_timestamp=NOW_MS)
        assert await store.load() == record

    @pytest.mark.asyncio
    async def test_failures_accumulate_up_to_cap(self):
        tracker = AttemptTracker(MemoryAttemptStore(), max_attempts=5)

        for i in range(5):
            assert await tracker.is_allowed(NOW_MS + i)
            await tracker.record_failure(NOW_MS + i)

        assert not await tracker.is_allowed(NOW_MS + 10)

    @pytest.mark.asyncio
    async def test_window_boundary(self):
        store = MemoryAttemptStore(AttemptRecord(attempt_count=5, last_attempt_timestamp=NOW_MS))
        tracker = AttemptTracker(store, max_attempts=5, window_seconds=3600)

        assert not await tracker.is_allowed(NOW_MS + HOUR_MS)
        assert await tracker.is_allowed(NOW_MS + HOUR_MS + 1)
        assert await store.load() == AttemptRecord(attempt_count=0, last_attempt_timestamp=NOW_MS + HOUR_MS + 1)

    @pytest.mark.asyncio
    async def test_success_clears(self):
        store = MemoryAttemptStore(AttemptRecord(attempt_count=4, last_attempt_timestamp=NOW_MS))

        await AttemptTracker(store).record_success()

        assert await store.load() is None


@pytest.mark.unit
class TestRedisAttemptStore:

    @pytest.fixture
    def redis_client(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=[b"2", str(NOW_MS).encode()])
        client.setex = AsyncMock(return_value=True)
        client.delete = AsyncMock(return_value=2)
        return client

    @pytest.mark.asyncio
    async def test_load_decodes_bytes(self, redis_client):
        store = RedisAttemptStore(redis_client, "device-1")

        record = await store.load()

        assert record == AttemptRecord(attempt_count=2, last_attempt_timestamp=NOW_MS)
        redis_client.get.assert_any_await("medidash:device:device-1:confirmation_attempts")
        redis_client.get.assert_any_await("medidash:device:device-1:confirmation_last_attempt")

    @pytest.mark.asyncio
    async def test_load_missing(self, redis_client):
        redis_client.get = AsyncMock(return_value=None)

        assert await RedisAttemptStore(redis_client, "device-1").load() is None

    @pytest.mark.asyncio
    async def test_save_sets_both_keys_with_ttl(self, redis_client):
        store = RedisAttemptStore(redis_client, "device-1", prefix="test", ttl=3600)

        await store.save(AttemptRecord(attempt_count=3, last_attempt_timestamp=NOW_MS))

        redis_client.setex.assert_any_await("test:device:device-1:confirmation_attempts", 3600, "3")
        redis_client.setex.assert_any_await("test:device:device-1:confirmation_last_attempt", 3600, str(NOW_MS))

    @pytest.mark.asyncio
    async def test_clear_deletes_both_keys(self, redis_client):
        await RedisAttemptStore(redis_client, "device-1").clear()

        redis_client.delete.assert_awaited_once_with(
            "medidash:device:device-1:confirmation_attempts",
            "medidash:device:device-1:confirmation_last_attempt"
        )
