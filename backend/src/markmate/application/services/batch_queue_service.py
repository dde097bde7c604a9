"""
Batch Queue Service
Enqueues upload batches and reports their progress
"""
from typing import Dict, List, Optional
from uuid import UUID

from loguru import logger

from markmate.application.repositories.interfaces import IBatchStateStore
from markmate.application.services.queue.interfaces import IJobQueue
from markmate.core.exceptions import InvalidStateException, ResourceNotFoundException
from markmate.domain.enums import CandidateStatus


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class BatchQueueService:
    """Service for batch queue operations"""

    def __init__(self, store: IBatchStateStore, queue: IJobQueue):
        self.store = store
        self.queue = queue

    async def enqueue_batch(self, batch_id: UUID) -> UUID:
        """
        Push a pending batch onto the upload queue

        Args:
            batch_id: Batch UUID

        Returns:
            The enqueued batch ID

        Raises:
            ResourceNotFoundException: batch does not exist
            InvalidStateException: batch is not pending
        """
        batch = await self.store.get_batch(batch_id)
        if batch is None:
            raise ResourceNotFoundException("Batch", str(batch_id))
        if not batch.is_pending():
            raise InvalidStateException("Batch", str(batch_id), batch.status.value)

        await self.queue.enqueue(batch_id)
        logger.info(f"✅ Batch {batch_id} enqueued successfully")
        return batch_id

    async def get_batch_status(self, batch_id: UUID) -> Optional[dict]:
        """
        Get status of a batch with candidate counts

        Args:
            batch_id: Batch UUID

        Returns:
            Dictionary with batch status information, None when the batch is unknown
        """
        batch = await self.store.get_batch(batch_id)
        if not batch:
            return None

        counts = await self.store.count_candidates(batch_id)
        return {
            "id": str(batch.id),
            "file_name": batch.file_name,
            "status": batch.status.value,
            "error_message": batch.error_message,
            "created_at": _iso(batch.created_at),
            "started_at": _iso(batch.started_at),
            "completed_at": _iso(batch.completed_at),
            "summary": self._summarize(counts),
        }

    async def get_candidate_statuses(self, batch_id: UUID) -> List[dict]:
        """Candidate status rows in stored order"""
        candidates = await self.store.list_candidates(batch_id)
        return [
            {
                "id": str(candidate.id),
                "external_id": candidate.external_id,
                "name": candidate.name,
                "status": candidate.status.value,
                "error_message": candidate.error_message,
            }
            for candidate in candidates
        ]

    async def get_queue_stats(self) -> dict:
        return {"waiting": await self.queue.size()}

    @staticmethod
    def _summarize(counts: Dict[CandidateStatus, int]) -> dict:
        return {
            "total": sum(counts.values()),
            "success": counts.get(CandidateStatus.SUCCESS, 0),
            "failed": counts.get(CandidateStatus.FAILED, 0),
            "pending": counts.get(CandidateStatus.PENDING, 0),
        }
