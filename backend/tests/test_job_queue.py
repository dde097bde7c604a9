"""
Tests for the job queue backends
"""
import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from markmate.application.services.queue import QueuedJob
from markmate.infrastructure.queue import InMemoryJobQueue, RedisJobQueue, RedisSessionGate


class TestQueuedJob:
    """Entry encoding"""

    def test_encode_decode(self):
        batch_id = uuid4()
        raw = QueuedJob.encode(batch_id)

        assert json.loads(raw) == {"batch_id": str(batch_id)}
        assert QueuedJob.decode(raw).batch_id == batch_id

    @pytest.mark.parametrize("raw", ["not json", "{}", '{"batch_id": "nope"}', "[1, 2]"])
    def test_decode_rejects_malformed(self, raw):
        with pytest.raises(ValueError, match="Malformed queue entry"):
            QueuedJob.decode(raw)


class TestInMemoryJobQueue:
    """asyncio.Queue backend"""

    @pytest.mark.asyncio
    async def test_fifo_delivery(self):
        queue = InMemoryJobQueue()
        ids = [uuid4() for _ in range(3)]
        for batch_id in ids:
            await queue.enqueue(batch_id)

        delivered = [(await queue.dequeue(0.1)).batch_id for _ in ids]

        assert delivered == ids

    @pytest.mark.asyncio
    async def test_dequeue_times_out_with_none(self):
        queue = InMemoryJobQueue()
        assert await queue.dequeue(0.01) is None

    @pytest.mark.asyncio
    async def test_each_entry_delivered_once(self):
        queue = InMemoryJobQueue()
        await queue.enqueue(uuid4())

        results = await asyncio.gather(queue.dequeue(0.05), queue.dequeue(0.05))

        assert sum(1 for r in results if r is not None) == 1

    @pytest.mark.asyncio
    async def test_ack_clears_active(self):
        queue = InMemoryJobQueue()
        await queue.enqueue(uuid4())

        job = await queue.dequeue(0.1)
        assert await queue.active() == 1
        await queue.ack(job)

        assert await queue.active() == 0
        assert await queue.size() == 0


class TestRedisJobQueue:
    """Redis list backend"""

    @pytest.fixture
    def redis_client(self):
        client = MagicMock()
        client.rpush = AsyncMock(return_value=1)
        client.blmove = AsyncMock()
        client.lrem = AsyncMock(return_value=1)
        client.llen = AsyncMock(return_value=0)
        client.aclose = AsyncMock()
        return client

    @pytest.fixture
    def queue(self, redis_client):
        return RedisJobQueue(redis_client, "upload-batch-queue")

    @pytest.mark.asyncio
    async def test_enqueue_pushes_to_tail(self, queue, redis_client):
        batch_id = uuid4()

        await queue.enqueue(batch_id)

        redis_client.rpush.assert_awaited_once_with(
            "upload-batch-queue:waiting", QueuedJob.encode(batch_id)
        )

    @pytest.mark.asyncio
    async def test_dequeue_moves_to_active_list(self, queue, redis_client):
        batch_id = uuid4()
        redis_client.blmove.return_value = QueuedJob.encode(batch_id)

        job = await queue.dequeue(2.0)

        assert job.batch_id == batch_id
        redis_client.blmove.assert_awaited_once_with(
            "upload-batch-queue:waiting", "upload-batch-queue:active", 2.0, src="LEFT", dest="RIGHT"
        )

    @pytest.mark.asyncio
    async def test_dequeue_timeout_returns_none(self, queue, redis_client):
        redis_client.blmove.return_value = None
        assert await queue.dequeue(1.0) is None

    @pytest.mark.asyncio
    async def test_malformed_entry_is_dropped(self, queue, redis_client):
        redis_client.blmove.return_value = "garbage"

        assert await queue.dequeue(1.0) is None
        redis_client.lrem.assert_awaited_once_with("upload-batch-queue:active", 1, "garbage")

    @pytest.mark.asyncio
    async def test_ack_removes_from_active(self, queue, redis_client):
        job = QueuedJob.decode(QueuedJob.encode(uuid4()))

        await queue.ack(job)

        redis_client.lrem.assert_awaited_once_with("upload-batch-queue:active", 1, job.raw)

    @pytest.mark.asyncio
    async def test_size_and_close(self, queue, redis_client):
        redis_client.llen.return_value = 4

        assert await queue.size() == 4
        await queue.close()

        redis_client.llen.assert_awaited_with("upload-batch-queue:waiting")
        redis_client.aclose.assert_awaited_once()


class TestRedisSessionGate:
    """Cross-process lock around the local semaphore"""

    @pytest.mark.asyncio
    async def test_lock_acquired_and_released(self):
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=True)
        lock.release = AsyncMock()
        lock.reacquire = AsyncMock()
        client = MagicMock()
        client.lock.return_value = lock

        gate = RedisSessionGate(client, "markmate:portal-session", ttl_seconds=60)
        async with gate.hold("batch-1"):
            assert gate.active == 1
            lock.release.assert_not_awaited()

        client.lock.assert_called_once_with("markmate:portal-session", timeout=60)
        lock.acquire.assert_awaited_once()
        lock.release.assert_awaited_once()
        assert gate.active == 0
