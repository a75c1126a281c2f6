"""Tests for the per-claim submission guard."""
import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.exceptions import AlreadyInProgressException, ExternalServiceException
from app.services.idempotency import InMemoryIdempotencyGuard, RedisIdempotencyGuard


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the guard."""

    def __init__(self, fail: bool = False):
        self.store = {}
        self.fail = fail
        self.ttls = {}
        self.closed = False

    async def set(self, key, value, nx=False, px=None):
        if self.fail:
            raise RedisConnectionError("connection refused")
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.ttls[key] = px
        return True

    async def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        return int(key in self.store)

    async def aclose(self):
        self.closed = True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_in_memory_acquire_is_exclusive():
    guard = InMemoryIdempotencyGuard()

    assert await guard.try_acquire("claim-1") is True
    assert await guard.try_acquire("claim-1") is False
    assert await guard.try_acquire("claim-2") is True
    assert await guard.is_held("claim-1")

    await guard.release("claim-1")

    assert not await guard.is_held("claim-1")
    assert await guard.try_acquire("claim-1") is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_release_of_unheld_claim_is_a_no_op():
    guard = InMemoryIdempotencyGuard()

    await guard.release("never-held")

    assert not await guard.is_held("never-held")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hold_releases_on_exception():
    guard = InMemoryIdempotencyGuard()

    with pytest.raises(RuntimeError):
        async with guard.hold("claim-1"):
            assert await guard.is_held("claim-1")
            raise RuntimeError("boom")

    assert not await guard.is_held("claim-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_hold_refuses_second_holder_without_releasing_first():
    guard = InMemoryIdempotencyGuard()

    async with guard.hold("claim-1"):
        with pytest.raises(AlreadyInProgressException):
            async with guard.hold("claim-1"):
                pass
        assert await guard.is_held("claim-1")

    assert not await guard.is_held("claim-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_one_of_many_concurrent_acquires_wins():
    guard = InMemoryIdempotencyGuard()

    results = await asyncio.gather(*(guard.try_acquire("claim-1") for _ in range(20)))

    assert results.count(True) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_redis_guard_uses_set_nx_with_ttl():
    client = FakeRedis()
    guard = RedisIdempotencyGuard(redis_client=client, ttl_seconds=90)

    assert await guard.try_acquire("claim-1") is True
    assert await guard.try_acquire("claim-1") is False
    assert client.ttls["claimrelay:submission-lock:claim-1"] == 90_000
    assert await guard.is_held("claim-1")

    await guard.release("claim-1")

    assert not await guard.is_held("claim-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_redis_guard_does_not_release_someone_elses_lease():
    client = FakeRedis()
    guard = RedisIdempotencyGuard(redis_client=client, ttl_seconds=90)
    await guard.try_acquire("claim-1")

    # Lease expired and another worker took it
    client.store["claimrelay:submission-lock:claim-1"] = "other-worker-token"

    await guard.release("claim-1")

    assert client.store["claimrelay:submission-lock:claim-1"] == "other-worker-token"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_redis_outage_refuses_to_proceed():
    guard = RedisIdempotencyGuard(redis_client=FakeRedis(fail=True))

    with pytest.raises(ExternalServiceException) as exc_info:
        async with guard.hold("claim-1"):
            pass

    assert exc_info.value.status_code == 503
    assert exc_info.value.details["service_name"] == "redis"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_redis_guard_close():
    client = FakeRedis()
    guard = RedisIdempotencyGuard(redis_client=client)

    await guard.close()

    assert client.closed
