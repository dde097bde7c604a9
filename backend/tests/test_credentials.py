"""
Tests for credential decryption and resolution
"""
import pytest
from cryptography.fernet import Fernet
from uuid import uuid4

from conftest import PORTAL_PASSWORD
from markmate.application.services.credentials import EncryptedCredentialProvider
from markmate.core.exceptions import ConfigurationException, CredentialNotFoundError
from markmate.infrastructure.security.encryption import DecryptionError, FernetEncryptionService


class TestFernetEncryptionService:
    """Fernet wrapper"""

    def test_round_trip(self, encryption):
        token = encryption.encrypt("hunter2")
        assert token != "hunter2"
        assert encryption.decrypt(token) == "hunter2"

    def test_wrong_key_raises_decryption_error(self, encryption):
        other = FernetEncryptionService(Fernet.generate_key().decode())
        with pytest.raises(DecryptionError):
            other.decrypt(encryption.encrypt("hunter2"))

    @pytest.mark.parametrize("key", ["", "not-a-fernet-key"])
    def test_invalid_key_is_configuration_error(self, key):
        with pytest.raises(ConfigurationException):
            FernetEncryptionService(key)


class TestEncryptedCredentialProvider:
    """Reference in, plaintext out"""

    @pytest.mark.asyncio
    async def test_resolves_stored_credential(self, seeder, session_factory, encryption):
        credential_id = await seeder.credential("assessor07", PORTAL_PASSWORD)
        provider = EncryptedCredentialProvider(session_factory, encryption)

        credential = await provider.resolve(credential_id)

        assert credential.username == "assessor07"
        assert credential.password == PORTAL_PASSWORD

    @pytest.mark.asyncio
    async def test_missing_reference(self, session_factory, encryption):
        provider = EncryptedCredentialProvider(session_factory, encryption)

        with pytest.raises(CredentialNotFoundError, match="No credential was selected"):
            await provider.resolve(None)

    @pytest.mark.asyncio
    async def test_unknown_reference(self, session_factory, encryption):
        provider = EncryptedCredentialProvider(session_factory, encryption)

        with pytest.raises(CredentialNotFoundError, match="not found"):
            await provider.resolve(uuid4())

    @pytest.mark.asyncio
    async def test_undecryptable_token(self, seeder, session_factory):
        credential_id = await seeder.credential()
        other_key = FernetEncryptionService(Fernet.generate_key().decode())
        provider = EncryptedCredentialProvider(session_factory, other_key)

        with pytest.raises(CredentialNotFoundError, match="could not be decrypted"):
            await provider.resolve(credential_id)
