"""
Candidate Repository Implementation
"""
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from markmate.core.exceptions import BatchPreconditionError
from markmate.domain.entities import Candidate, CandidateMark
from markmate.domain.enums import CandidateStatus
from markmate.domain.value_objects import ErrorMessage
from markmate.infrastructure.persistence.models import CandidateModel, CandidateMarkModel


class CandidateRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        batch_id: UUID,
        external_id: str,
        name: Optional[str] = None,
        row_index: int = 0,
        marks: Iterable[CandidateMark] = (),
    ) -> Candidate:
        """Create a pending candidate with its marks"""
        model = CandidateModel(
            batch_id=batch_id,
            external_id=external_id,
            candidate_name=name,
            row_index=row_index,
            status=CandidateStatus.PENDING,
            marks=[
                CandidateMarkModel(
                    nos_identifier=mark.nos_identifier,
                    theory_marks=mark.theory_marks,
                    practical_marks=mark.practical_marks,
                )
                for mark in marks
            ],
        )
        self.session.add(model)
        await self.session.flush()
        return await self.get_by_id(model.id)

    async def get_by_id(self, candidate_id: UUID) -> Optional[Candidate]:
        result = await self.session.execute(
            select(CandidateModel)
            .options(selectinload(CandidateModel.marks))
            .where(CandidateModel.id == candidate_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_batch(self, batch_id: UUID, status: Optional[CandidateStatus] = None) -> List[Candidate]:
        """Candidates of a batch in stored (spreadsheet row) order"""
        query = (
            select(CandidateModel)
            .options(selectinload(CandidateModel.marks))
            .where(CandidateModel.batch_id == batch_id)
            .order_by(CandidateModel.row_index.asc(), CandidateModel.created_at.asc())
            .execution_options(populate_existing=True)
        )
        if status is not None:
            query = query.where(CandidateModel.status == status)

        result = await self.session.execute(query)
        candidates = []
        for model in result.scalars().all():
            try:
                candidates.append(self._to_entity(model))
            except ValueError as e:
                raise BatchPreconditionError(f"Stored candidate {model.id} is invalid: {e}") from e
        return candidates

    async def mark_success(self, candidate_id: UUID) -> bool:
        return await self._set_terminal(candidate_id, CandidateStatus.SUCCESS, None)

    async def mark_failed(self, candidate_id: UUID, error: ErrorMessage) -> bool:
        return await self._set_terminal(candidate_id, CandidateStatus.FAILED, str(error))

    async def _set_terminal(self, candidate_id: UUID, status: CandidateStatus, error_message: Optional[str]) -> bool:
        # Terminal status is write-once: only pending rows are updated
        result = await self.session.execute(
            update(CandidateModel)
            .where(
                CandidateModel.id == candidate_id,
                CandidateModel.status == CandidateStatus.PENDING,
            )
            .values(status=status, error_message=error_message)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_by_status(self, batch_id: UUID) -> Dict[CandidateStatus, int]:
        result = await self.session.execute(
            select(CandidateModel.status, func.count(CandidateModel.id))
            .where(CandidateModel.batch_id == batch_id)
            .group_by(CandidateModel.status)
        )
        counts = {status: 0 for status in CandidateStatus}
        for status, count in result.all():
            counts[CandidateStatus(status)] = count
        return counts

    @staticmethod
    def _to_entity(model: CandidateModel) -> Candidate:
        return Candidate(
            id=model.id,
            batch_id=model.batch_id,
            external_id=model.external_id,
            status=CandidateStatus(model.status),
            name=model.candidate_name,
            row_index=model.row_index,
            error_message=model.error_message,
            marks=tuple(
                CandidateMark(
                    nos_identifier=mark.nos_identifier,
                    theory_marks=mark.theory_marks,
                    practical_marks=mark.practical_marks,
                )
                for mark in model.marks
            ),
        )
