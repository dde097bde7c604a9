"""
AssessorCredential Repository Implementation
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from markmate.infrastructure.persistence.models import AssessorCredentialModel


class AssessorCredentialRepository:
    """Repository for stored (encrypted) portal credentials"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, username: str, encrypted_password: str) -> AssessorCredentialModel:
        """Store a credential whose password is already encrypted"""
        model = AssessorCredentialModel(username=username, encrypted_password=encrypted_password)
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return model

    async def get_by_id(self, credential_id: UUID) -> Optional[AssessorCredentialModel]:
        result = await self.session.execute(
            select(AssessorCredentialModel).where(AssessorCredentialModel.id == credential_id)
        )
        return result.scalar_one_or_none()
