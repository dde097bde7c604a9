"""
Credential Provider Interface
"""
from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from markmate.domain.entities import PlaintextCredential


class ICredentialProvider(ABC):
    """Resolves a batch's credential reference to a plaintext secret"""

    @abstractmethod
    async def resolve(self, credential_ref: Optional[UUID]) -> PlaintextCredential:
        """Return the decrypted credential.

        Raises:
            CredentialNotFoundError: reference missing, unknown or undecryptable
        """
        pass
