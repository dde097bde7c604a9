"""
Redis Session Gate
Extends the single-session cap across worker processes
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import LockError

from markmate.application.services.jobs.session_gate import SessionGate


class RedisSessionGate(SessionGate):
    """Process-local semaphore plus a Redis lock shared by every worker

    The lock carries a TTL so a crashed holder cannot block the fleet; a
    background task keeps re-arming it while the session is live.
    """

    def __init__(
        self,
        client: Redis,
        lock_name: str,
        ttl_seconds: float = 120.0,
        max_sessions: int = 1,
    ):
        super().__init__(max_sessions)
        self._redis = client
        self.lock_name = lock_name
        self.ttl_seconds = ttl_seconds

    @asynccontextmanager
    async def hold(self, batch_id: object) -> AsyncIterator[None]:
        async with super().hold(batch_id):
            lock = self._redis.lock(self.lock_name, timeout=self.ttl_seconds)
            await lock.acquire()
            logger.debug(f"Acquired session lock {self.lock_name} for batch {batch_id}")
            keeper = asyncio.create_task(self._keep_alive(lock))
            try:
                yield
            finally:
                keeper.cancel()
                await asyncio.gather(keeper, return_exceptions=True)
                try:
                    await lock.release()
                except LockError as e:
                    logger.warning(f"Session lock {self.lock_name} was lost before release: {e}")

    async def _keep_alive(self, lock) -> None:
        interval = max(self.ttl_seconds / 3, 0.1)
        while True:
            await asyncio.sleep(interval)
            try:
                await lock.reacquire()
            except LockError as e:
                logger.error(f"Could not extend session lock {self.lock_name}: {e}")
                return

    async def close(self) -> None:
        await self._redis.aclose()
