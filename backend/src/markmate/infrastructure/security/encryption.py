"""
Fernet Encryption Service
For decrypting stored assessor credentials
"""
from cryptography.fernet import Fernet, InvalidToken

from markmate.core.config import Settings
from markmate.core.exceptions import ConfigurationException
from markmate.application.services.security.interfaces import IEncryptionService


class DecryptionError(Exception):
    """Ciphertext is not a valid token for the configured key"""
    pass


class FernetEncryptionService(IEncryptionService):
    """Fernet symmetric encryption"""

    def __init__(self, key: str):
        if not key:
            raise ConfigurationException("FERNET_KEY must be set to decrypt stored credentials")
        try:
            self.cipher = Fernet(key.encode())
        except ValueError as e:
            raise ConfigurationException(f"FERNET_KEY is not a valid Fernet key: {e}") from e

    @classmethod
    def from_settings(cls, settings: Settings) -> "FernetEncryptionService":
        return cls(settings.FERNET_KEY)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt string"""
        encrypted = self.cipher.encrypt(plaintext.encode())
        return encrypted.decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt string"""
        try:
            decrypted = self.cipher.decrypt(ciphertext.encode())
        except InvalidToken as e:
            raise DecryptionError("Stored credential could not be decrypted with the configured key") from e
        return decrypted.decode()
