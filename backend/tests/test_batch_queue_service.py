"""
Tests for batch enqueueing and status reporting
"""
import pytest
from uuid import uuid4

from markmate.application.services.batch_queue_service import BatchQueueService
from markmate.core.exceptions import InvalidStateException, ResourceNotFoundException
from markmate.domain.value_objects import ErrorMessage
from markmate.infrastructure.queue import InMemoryJobQueue


@pytest.fixture
def queue():
    return InMemoryJobQueue()


@pytest.fixture
def service(store, queue):
    return BatchQueueService(store, queue)


class TestEnqueueBatch:

    @pytest.mark.asyncio
    async def test_enqueues_pending_batch(self, seeder, service, queue):
        batch = await seeder.batch(["C1"])

        assert await service.enqueue_batch(batch.id) == batch.id

        job = await queue.dequeue(0.1)
        assert job.batch_id == batch.id

    @pytest.mark.asyncio
    async def test_unknown_batch(self, service):
        with pytest.raises(ResourceNotFoundException):
            await service.enqueue_batch(uuid4())

    @pytest.mark.asyncio
    async def test_batch_already_processing(self, seeder, store, service, queue):
        batch = await seeder.batch(["C1"])
        await store.claim_batch(batch.id)

        with pytest.raises(InvalidStateException, match="processing"):
            await service.enqueue_batch(batch.id)
        assert await queue.size() == 0


class TestStatusReporting:

    @pytest.mark.asyncio
    async def test_batch_status_with_summary(self, seeder, store, service):
        batch = await seeder.batch(["C1", "C2", "C3"])
        await store.claim_batch(batch.id)
        c1, c2, _ = await store.list_pending_candidates(batch.id)
        await store.mark_candidate_success(c1.id)
        await store.mark_candidate_failed(c2.id, ErrorMessage("bad marks"))

        status = await service.get_batch_status(batch.id)

        assert status["id"] == str(batch.id)
        assert status["status"] == "processing"
        assert status["started_at"] is not None
        assert status["completed_at"] is None
        assert status["summary"] == {"total": 3, "success": 1, "failed": 1, "pending": 1}

    @pytest.mark.asyncio
    async def test_unknown_batch_status(self, service):
        assert await service.get_batch_status(uuid4()) is None

    @pytest.mark.asyncio
    async def test_candidate_statuses_in_order(self, seeder, store, service):
        batch = await seeder.batch(["C1", "C2"])
        c1, _ = await store.list_pending_candidates(batch.id)
        await store.mark_candidate_failed(c1.id, ErrorMessage("bad marks"))

        rows = await service.get_candidate_statuses(batch.id)

        assert [(r["external_id"], r["status"], r["error_message"]) for r in rows] == [
            ("C1", "failed", "bad marks"),
            ("C2", "pending", None),
        ]

    @pytest.mark.asyncio
    async def test_queue_stats(self, seeder, service):
        batch = await seeder.batch(["C1"])
        await service.enqueue_batch(batch.id)

        assert await service.get_queue_stats() == {"waiting": 1}
