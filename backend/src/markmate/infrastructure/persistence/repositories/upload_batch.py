"""
UploadBatch Repository Implementation
Conditional status transitions for upload batches
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from markmate.domain.entities import Batch
from markmate.domain.enums import BatchStatus
from markmate.domain.value_objects import ErrorMessage
from markmate.infrastructure.persistence.models import UploadBatchModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite) as UTC so they compare with aware ones"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UploadBatchRepository:
    """Repository for UploadBatch operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        portal_batch_id: Optional[str] = None,
        assessor_credential_id: Optional[UUID] = None,
        file_name: Optional[str] = None,
    ) -> Batch:
        """Create a new pending batch"""
        model = UploadBatchModel(
            file_name=file_name,
            portal_batch_id=portal_batch_id,
            assessor_credential_id=assessor_credential_id,
            status=BatchStatus.PENDING,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def get_model(self, batch_id: UUID) -> Optional[UploadBatchModel]:
        result = await self.session.execute(
            select(UploadBatchModel)
            .where(UploadBatchModel.id == batch_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, batch_id: UUID) -> Optional[Batch]:
        """Get a batch by its ID"""
        model = await self.get_model(batch_id)
        return self._to_entity(model) if model else None

    async def mark_processing(self, batch_id: UUID) -> bool:
        """Move pending -> processing; False when another transition already happened"""
        now = utcnow()
        result = await self.session.execute(
            update(UploadBatchModel)
            .where(
                UploadBatchModel.id == batch_id,
                UploadBatchModel.status == BatchStatus.PENDING,
            )
            .values(status=BatchStatus.PROCESSING, started_at=now, heartbeat_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def touch(self, batch_id: UUID) -> bool:
        """Record that a processing batch is still being worked on"""
        result = await self.session.execute(
            update(UploadBatchModel)
            .where(
                UploadBatchModel.id == batch_id,
                UploadBatchModel.status == BatchStatus.PROCESSING,
            )
            .values(heartbeat_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_complete(self, batch_id: UUID) -> bool:
        """Move processing -> complete"""
        return await self._finalize(batch_id, BatchStatus.COMPLETE, None)

    async def mark_failed(self, batch_id: UUID, error: ErrorMessage) -> bool:
        """Move processing -> failed with a bounded error message"""
        return await self._finalize(batch_id, BatchStatus.FAILED, str(error))

    async def _finalize(self, batch_id: UUID, status: BatchStatus, error_message: Optional[str]) -> bool:
        model = await self.get_model(batch_id)
        if not model or model.status != BatchStatus.PROCESSING:
            return False

        completed_at = utcnow()
        if model.started_at and as_utc(model.started_at) > completed_at:
            # Clock skew between writers must not break completed_at >= started_at
            completed_at = as_utc(model.started_at)

        result = await self.session.execute(
            update(UploadBatchModel)
            .where(
                UploadBatchModel.id == batch_id,
                UploadBatchModel.status == BatchStatus.PROCESSING,
            )
            .values(status=status, completed_at=completed_at, error_message=error_message)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_stale_processing(self, idle_since: datetime) -> List[Batch]:
        """Processing batches with no heartbeat (or start, for older rows) since the cutoff"""
        last_seen = func.coalesce(UploadBatchModel.heartbeat_at, UploadBatchModel.started_at)
        result = await self.session.execute(
            select(UploadBatchModel)
            .where(
                UploadBatchModel.status == BatchStatus.PROCESSING,
                last_seen < idle_since,
            )
            .order_by(UploadBatchModel.started_at.asc())
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    @staticmethod
    def _to_entity(model: UploadBatchModel) -> Batch:
        return Batch(
            id=model.id,
            status=BatchStatus(model.status),
            credential_ref=model.assessor_credential_id,
            portal_ref=model.portal_batch_id,
            file_name=model.file_name,
            error_message=model.error_message,
            created_at=as_utc(model.created_at),
            started_at=as_utc(model.started_at),
            completed_at=as_utc(model.completed_at),
            heartbeat_at=as_utc(model.heartbeat_at),
        )
