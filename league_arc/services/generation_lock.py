"""
Per-league lock serializing fixture generation.

Two admins generating fixtures for the same league at once would both read
the same "highest open gameweek" and insert colliding rounds. Generation
therefore runs inside ``GenerationLock.hold(league_id)``:

- With Redis configured, a ``SET NX EX`` key per league works across
  processes. A held key fails fast with GenerationInProgressError; the key
  expires on its own if the holder dies.
- Without Redis, an asyncio.Lock per league serializes callers within the
  process (the second caller waits instead of failing).
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Dict, Optional

from league_arc.config import Config
from league_arc.utils.league_exceptions import GenerationInProgressError
from league_arc.utils.redis_utils import RedisUtils

logger = logging.getLogger(__name__)

# Deletes the key only if we still own it
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class GenerationLock:
    """Single-writer lock for fixture generation, keyed by league."""

    def __init__(self, redis_client=None, ttl: Optional[int] = None):
        self.redis_client = redis_client
        self.ttl = ttl or Config.GENERATION_LOCK_TTL
        self._local_locks: Dict[int, asyncio.Lock] = {}
        if self.redis_client is None:
            logger.debug("No Redis client, fixture generation will use process-local locks")

    @classmethod
    async def create(cls) -> 'GenerationLock':
        """Build a lock backed by Redis when REDIS_URL is configured."""
        return cls(await RedisUtils.create_redis_client())

    @staticmethod
    def lock_key(league_id: int) -> str:
        return f"fixture_generation_lock:{league_id}"

    @asynccontextmanager
    async def hold(self, league_id: int):
        """Hold the generation lock for ``league_id`` for the duration of the block."""
        if self.redis_client is not None:
            async with self._hold_distributed(league_id):
                yield
        else:
            lock = self._local_locks.setdefault(league_id, asyncio.Lock())
            async with lock:
                yield

    @asynccontextmanager
    async def _hold_distributed(self, league_id: int):
        key = self.lock_key(league_id)
        token = uuid.uuid4().hex

        acquired = await self.redis_client.set(key, token, ex=self.ttl, nx=True)
        if not acquired:
            logger.info(f"Fixture generation for league {league_id} rejected - lock exists")
            raise GenerationInProgressError(league_id)

        try:
            yield
        finally:
            await self.redis_client.eval(_RELEASE_SCRIPT, 1, key, token)

    async def close(self):
        """Clean up Redis connection."""
        if self.redis_client is not None:
            await self.redis_client.aclose()
