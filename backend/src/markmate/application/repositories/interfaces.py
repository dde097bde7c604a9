"""
Repository Interfaces (Abstract Base Classes)
Define contracts for batch state access without implementation details
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from markmate.domain.entities import Batch, Candidate
from markmate.domain.enums import CandidateStatus
from markmate.domain.value_objects import ErrorMessage


class IBatchStateStore(ABC):
    """Durable record of batches and candidates

    Every write is persisted before the call returns, so a crash leaves the
    last observed transition on disk.
    """

    @abstractmethod
    async def get_batch(self, batch_id: UUID) -> Optional[Batch]:
        """Get batch by ID"""
        pass

    @abstractmethod
    async def claim_batch(self, batch_id: UUID) -> Optional[Batch]:
        """Move a pending batch to processing and stamp started_at.

        Returns None when the batch is missing or not pending.
        """
        pass

    @abstractmethod
    async def list_pending_candidates(self, batch_id: UUID) -> List[Candidate]:
        """Pending candidates with marks, in stored order"""
        pass

    @abstractmethod
    async def list_candidates(self, batch_id: UUID) -> List[Candidate]:
        """All candidates in stored order"""
        pass

    @abstractmethod
    async def touch_batch(self, batch_id: UUID) -> bool:
        """Refresh the heartbeat of a processing batch; False once it is no longer processing"""
        pass

    @abstractmethod
    async def mark_candidate_success(self, candidate_id: UUID) -> bool:
        """Set a pending candidate to success; False if it was already terminal"""
        pass

    @abstractmethod
    async def mark_candidate_failed(self, candidate_id: UUID, error: ErrorMessage) -> bool:
        """Set a pending candidate to failed; False if it was already terminal"""
        pass

    @abstractmethod
    async def complete_batch(self, batch_id: UUID) -> Optional[Batch]:
        """Finalize a processing batch as complete"""
        pass

    @abstractmethod
    async def fail_batch(self, batch_id: UUID, error: ErrorMessage) -> Optional[Batch]:
        """Finalize a processing batch as failed"""
        pass

    @abstractmethod
    async def count_candidates(self, batch_id: UUID) -> Dict[CandidateStatus, int]:
        """Candidate counts per status"""
        pass

    @abstractmethod
    async def fail_stale_batches(self, idle_since: datetime, error: ErrorMessage) -> List[UUID]:
        """Fail processing batches whose last heartbeat is older than the cutoff; returns their IDs"""
        pass
