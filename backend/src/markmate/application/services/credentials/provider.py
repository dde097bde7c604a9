"""
Encrypted Credential Provider
Loads stored assessor credentials and decrypts them at the moment of use
"""
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from markmate.application.services.credentials.interfaces import ICredentialProvider
from markmate.application.services.security.interfaces import IEncryptionService
from markmate.core.database import session_scope
from markmate.core.exceptions import CredentialNotFoundError
from markmate.domain.entities import PlaintextCredential
from markmate.infrastructure.persistence.repositories import AssessorCredentialRepository
from markmate.infrastructure.security.encryption import DecryptionError


class EncryptedCredentialProvider(ICredentialProvider):
    """Service for resolving encrypted assessor credentials"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        encryption_service: IEncryptionService,
    ):
        self._session_factory = session_factory
        self._encryption = encryption_service

    async def resolve(self, credential_ref: Optional[UUID]) -> PlaintextCredential:
        if credential_ref is None:
            raise CredentialNotFoundError("No credential was selected for this batch")

        async with session_scope(self._session_factory) as session:
            model = await AssessorCredentialRepository(session).get_by_id(credential_ref)
            if model is None:
                raise CredentialNotFoundError(f"Credential {credential_ref} not found")
            username = model.username
            encrypted_password = model.encrypted_password

        try:
            password = self._encryption.decrypt(encrypted_password)
        except DecryptionError as e:
            logger.error(f"Failed to decrypt credential {credential_ref}")
            raise CredentialNotFoundError(f"Credential {credential_ref} could not be decrypted") from e

        logger.debug(f"Resolved credential {credential_ref} for user {username}")
        return PlaintextCredential(username=username, password=password)
