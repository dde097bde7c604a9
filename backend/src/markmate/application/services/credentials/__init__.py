"""Credential resolution"""

from .interfaces import ICredentialProvider
from .provider import EncryptedCredentialProvider

__all__ = ["ICredentialProvider", "EncryptedCredentialProvider"]
