"""Tests for the per-league fixture generation lock."""

import asyncio

import pytest

from league_arc.config import Config
from league_arc.services.generation_lock import GenerationLock
from league_arc.utils.league_exceptions import GenerationInProgressError


class FakeRedis:
    """In-memory stand-in for the SET NX / token-checked release calls."""

    def __init__(self):
        self.store = {}
        self.expiries = {}
        self.closed = False

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.expiries[key] = ex
        return True

    async def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0

    async def aclose(self):
        self.closed = True


async def test_local_lock_serializes_same_league():
    lock = GenerationLock()
    order = []

    async def generate(name):
        async with lock.hold(1):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(generate("a"), generate("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


async def test_local_lock_is_per_league():
    lock = GenerationLock()

    async with lock.hold(1):
        async with lock.hold(2):
            pass


async def test_redis_lock_rejects_concurrent_holder():
    client = FakeRedis()
    lock = GenerationLock(client, ttl=5)

    async with lock.hold(7):
        assert GenerationLock.lock_key(7) in client.store
        assert client.expiries[GenerationLock.lock_key(7)] == 5
        with pytest.raises(GenerationInProgressError) as exc_info:
            async with lock.hold(7):
                pass
        assert exc_info.value.retryable is True

    assert client.store == {}


async def test_redis_lock_released_on_error():
    client = FakeRedis()
    lock = GenerationLock(client)

    with pytest.raises(RuntimeError):
        async with lock.hold(3):
            raise RuntimeError("boom")

    assert client.store == {}
    assert lock.ttl == Config.GENERATION_LOCK_TTL


async def test_release_leaves_foreign_token():
    client = FakeRedis()
    lock = GenerationLock(client)

    async with lock.hold(4):
        # Key expired and another process took it over
        client.store[GenerationLock.lock_key(4)] = "someone-else"

    assert client.store[GenerationLock.lock_key(4)] == "someone-else"


async def test_close_closes_client():
    client = FakeRedis()
    await GenerationLock(client).close()
    assert client.closed is True
