"""
Shared fixtures: temporary SQLite database, seeding helpers, scripted remote session
"""
import asyncio
from typing import Dict, List, Optional, Sequence, Union

import pytest
from cryptography.fernet import Fernet
from loguru import logger

from markmate.application.services.portal.interfaces import (
    Accepted,
    IRemoteSession,
    Outcome,
    SessionHandle,
)
from markmate.core.config import Settings
from markmate.core.database import close_db, create_engine, create_session_factory, init_db, session_scope
from markmate.domain.entities import Batch, Candidate, CandidateMark, CandidatePayload, PlaintextCredential
from markmate.infrastructure.persistence.repositories import (
    AssessorCredentialRepository,
    CandidateRepository,
    UploadBatchRepository,
)
from markmate.infrastructure.persistence.state_store import SqlAlchemyBatchStateStore
from markmate.infrastructure.security.encryption import FernetEncryptionService

PORTAL_PASSWORD = "s3cret-portal-pass"


@pytest.fixture
def fernet_key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture
def settings(tmp_path, fernet_key) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'markmate.db'}",
        QUEUE_BACKEND="memory",
        FERNET_KEY=fernet_key,
        LOG_JSON_FORMAT=False,
        _env_file=None,
    )


@pytest.fixture
async def session_factory(settings):
    engine = create_engine(settings)
    await init_db(engine)
    yield create_session_factory(engine)
    await close_db(engine)


@pytest.fixture
def store(session_factory) -> SqlAlchemyBatchStateStore:
    return SqlAlchemyBatchStateStore(session_factory)


@pytest.fixture
def encryption(fernet_key) -> FernetEncryptionService:
    return FernetEncryptionService(fernet_key)


class Seeder:
    """Creates rows the way the upload collaborator would"""

    def __init__(self, session_factory, encryption: FernetEncryptionService):
        self.session_factory = session_factory
        self.encryption = encryption

    async def credential(self, username: str = "assessor01", password: str = PORTAL_PASSWORD):
        async with session_scope(self.session_factory) as session:
            model = await AssessorCredentialRepository(session).create(
                username, self.encryption.encrypt(password)
            )
            return model.id

    async def batch(
        self,
        external_ids: Sequence[str] = ("C1", "C2", "C3"),
        with_credential: bool = True,
        portal_ref: str = "PB-1001",
        marks: Optional[Sequence[CandidateMark]] = None,
    ) -> Batch:
        credential_id = await self.credential() if with_credential else None
        async with session_scope(self.session_factory) as session:
            batch = await UploadBatchRepository(session).create(
                portal_batch_id=portal_ref,
                assessor_credential_id=credential_id,
                file_name="marks.xlsx",
            )
            candidates = CandidateRepository(session)
            for row_index, external_id in enumerate(external_ids):
                await candidates.add(
                    batch.id,
                    external_id,
                    name=f"Candidate {external_id}",
                    row_index=row_index,
                    marks=marks if marks is not None else (
                        CandidateMark("NOS1", 40, 50),
                        CandidateMark("NOS2", 30, 45),
                    ),
                )
            return batch


@pytest.fixture
def seeder(session_factory, encryption) -> Seeder:
    return Seeder(session_factory, encryption)


Script = Union[Outcome, BaseException, str]


class FakeRemoteSession(IRemoteSession):
    """Remote session whose outcomes are scripted per external id

    A script entry may be an Outcome, an exception to raise, or "hang" to
    block past any deadline.
    """

    def __init__(
        self,
        outcomes: Optional[Dict[str, Script]] = None,
        open_error: Optional[BaseException] = None,
        recover_error: Optional[BaseException] = None,
        close_error: Optional[BaseException] = None,
        open_delay: float = 0.0,
    ):
        self.outcomes = outcomes or {}
        self.open_error = open_error
        self.recover_error = recover_error
        self.close_error = close_error
        self.open_delay = open_delay

        self.opened: List[SessionHandle] = []
        self.submitted: List[str] = []
        self.recover_calls = 0
        self.close_calls = 0
        self.credentials: List[PlaintextCredential] = []
        self.live = 0
        self.max_live = 0

    async def open(self, credential: PlaintextCredential, portal_ref: Optional[str] = None) -> SessionHandle:
        self.credentials.append(credential)
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.open_error is not None:
            raise self.open_error
        handle = SessionHandle(portal_ref=portal_ref, resource=object())
        self.opened.append(handle)
        self.live += 1
        self.max_live = max(self.max_live, self.live)
        # Give other consumers a chance to interleave
        await asyncio.sleep(0)
        return handle

    async def submit_item(self, handle: SessionHandle, payload: CandidatePayload) -> Outcome:
        assert not handle.closed
        self.submitted.append(payload.external_id)
        await asyncio.sleep(0)
        script = self.outcomes.get(payload.external_id, Accepted())
        if script == "hang":
            await asyncio.sleep(3600)
        if isinstance(script, BaseException):
            raise script
        return script

    async def recover(self, handle: SessionHandle) -> None:
        self.recover_calls += 1
        if self.recover_error is not None:
            raise self.recover_error

    async def close(self, handle: SessionHandle) -> None:
        self.close_calls += 1
        if not handle.closed:
            handle.closed = True
            self.live -= 1
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def fake_session() -> FakeRemoteSession:
    return FakeRemoteSession()


@pytest.fixture
def log_messages():
    """Everything loguru emits during the test"""
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="DEBUG")
    yield messages
    logger.remove(handler_id)


def statuses(candidates: Sequence[Candidate]) -> Dict[str, str]:
    return {c.external_id: c.status.value for c in candidates}


