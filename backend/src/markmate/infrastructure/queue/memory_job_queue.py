"""
In-Memory Job Queue
asyncio.Queue backend for single-process deployments and tests
"""
import asyncio
from typing import Optional
from uuid import UUID

from loguru import logger

from markmate.application.services.queue.interfaces import IJobQueue, QueuedJob


class InMemoryJobQueue(IJobQueue):
    """Process-local FIFO queue"""

    def __init__(self):
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._active: list[str] = []

    async def enqueue(self, batch_id: UUID) -> None:
        await self._queue.put(QueuedJob.encode(batch_id))
        logger.debug(f"Enqueued batch {batch_id} (in-memory)")

    async def dequeue(self, timeout: float) -> Optional[QueuedJob]:
        try:
            raw = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        self._active.append(raw)
        return QueuedJob.decode(raw)

    async def ack(self, job: QueuedJob) -> None:
        if job.raw in self._active:
            self._active.remove(job.raw)
        self._queue.task_done()

    async def size(self) -> int:
        return self._queue.qsize()

    async def active(self) -> int:
        return len(self._active)
