"""
SQLAlchemy Batch State Store
One committed unit of work per transition
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from markmate.application.repositories.interfaces import IBatchStateStore
from markmate.core.database import session_scope
from markmate.domain.entities import Batch, Candidate
from markmate.domain.enums import CandidateStatus
from markmate.domain.value_objects import ErrorMessage
from markmate.infrastructure.persistence.repositories import CandidateRepository, UploadBatchRepository


class SqlAlchemyBatchStateStore(IBatchStateStore):
    """State store backed by the relational database"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_batch(self, batch_id: UUID) -> Optional[Batch]:
        async with session_scope(self._session_factory) as session:
            return await UploadBatchRepository(session).get_by_id(batch_id)

    async def claim_batch(self, batch_id: UUID) -> Optional[Batch]:
        async with session_scope(self._session_factory) as session:
            repo = UploadBatchRepository(session)
            if not await repo.mark_processing(batch_id):
                return None
            return await repo.get_by_id(batch_id)

    async def list_pending_candidates(self, batch_id: UUID) -> List[Candidate]:
        async with session_scope(self._session_factory) as session:
            return await CandidateRepository(session).get_by_batch(batch_id, CandidateStatus.PENDING)

    async def list_candidates(self, batch_id: UUID) -> List[Candidate]:
        async with session_scope(self._session_factory) as session:
            return await CandidateRepository(session).get_by_batch(batch_id)

    async def touch_batch(self, batch_id: UUID) -> bool:
        async with session_scope(self._session_factory) as session:
            return await UploadBatchRepository(session).touch(batch_id)

    async def mark_candidate_success(self, candidate_id: UUID) -> bool:
        async with session_scope(self._session_factory) as session:
            return await CandidateRepository(session).mark_success(candidate_id)

    async def mark_candidate_failed(self, candidate_id: UUID, error: ErrorMessage) -> bool:
        async with session_scope(self._session_factory) as session:
            return await CandidateRepository(session).mark_failed(candidate_id, error)

    async def complete_batch(self, batch_id: UUID) -> Optional[Batch]:
        async with session_scope(self._session_factory) as session:
            repo = UploadBatchRepository(session)
            if not await repo.mark_complete(batch_id):
                return None
            return await repo.get_by_id(batch_id)

    async def fail_batch(self, batch_id: UUID, error: ErrorMessage) -> Optional[Batch]:
        async with session_scope(self._session_factory) as session:
            repo = UploadBatchRepository(session)
            if not await repo.mark_failed(batch_id, error):
                return None
            return await repo.get_by_id(batch_id)

    async def count_candidates(self, batch_id: UUID) -> Dict[CandidateStatus, int]:
        async with session_scope(self._session_factory) as session:
            return await CandidateRepository(session).count_by_status(batch_id)

    async def fail_stale_batches(self, idle_since: datetime, error: ErrorMessage) -> List[UUID]:
        async with session_scope(self._session_factory) as session:
            repo = UploadBatchRepository(session)
            failed = []
            for batch in await repo.get_stale_processing(idle_since):
                if await repo.mark_failed(batch.id, error):
                    failed.append(batch.id)
            return failed
