"""
Redis Job Queue
FIFO list with an in-flight list per queue for acknowledgement
"""
from typing import Optional
from uuid import UUID

import redis.asyncio as redis
from redis.asyncio import Redis
from loguru import logger

from markmate.application.services.queue.interfaces import IJobQueue, QueuedJob
from markmate.core.config import Settings


class RedisJobQueue(IJobQueue):
    """Redis-backed job queue

    Entries are RPUSHed onto ``<name>:waiting`` and atomically moved to
    ``<name>:active`` by BLMOVE, so an entry reaches one consumer only and
    stays visible while its batch is processed.
    """

    def __init__(self, client: Redis, queue_name: str):
        self._redis = client
        self.queue_name = queue_name
        self.waiting_key = f"{queue_name}:waiting"
        self.active_key = f"{queue_name}:active"

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisJobQueue":
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
        )
        logger.info(f"Job queue '{settings.UPLOAD_QUEUE_NAME}' using Redis")
        return cls(client, settings.UPLOAD_QUEUE_NAME)

    async def enqueue(self, batch_id: UUID) -> None:
        await self._redis.rpush(self.waiting_key, QueuedJob.encode(batch_id))
        logger.debug(f"Enqueued batch {batch_id} on {self.waiting_key}")

    async def dequeue(self, timeout: float) -> Optional[QueuedJob]:
        raw = await self._redis.blmove(
            self.waiting_key, self.active_key, timeout, src="LEFT", dest="RIGHT"
        )
        if raw is None:
            return None

        try:
            return QueuedJob.decode(raw)
        except ValueError as e:
            logger.error(f"Dropping queue entry: {e}")
            await self._redis.lrem(self.active_key, 1, raw)
            return None

    async def ack(self, job: QueuedJob) -> None:
        removed = await self._redis.lrem(self.active_key, 1, job.raw)
        if not removed:
            logger.warning(f"Ack for batch {job.batch_id} found no active entry")

    async def size(self) -> int:
        return await self._redis.llen(self.waiting_key)

    async def active(self) -> int:
        """Entries delivered but not yet acknowledged"""
        return await self._redis.llen(self.active_key)

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("Disconnected job queue from Redis")
