"""
Batch Executor
Runs one claimed batch through a single remote session
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from loguru import logger

from markmate.application.repositories.interfaces import IBatchStateStore
from markmate.application.services.credentials.interfaces import ICredentialProvider
from markmate.application.services.jobs.session_gate import SessionGate
from markmate.application.services.portal.interfaces import (
    Accepted,
    IRemoteSession,
    Outcome,
    Rejected,
    SessionHandle,
    TimedOut,
)
from markmate.core.config import Settings
from markmate.core.exceptions import (
    BatchPreconditionError,
    ConnectivityError,
    SessionError,
    SessionRecoveryError,
)
from markmate.domain.entities import Batch, Candidate
from markmate.domain.enums import BatchStatus
from markmate.domain.value_objects import ErrorMessage


@dataclass(frozen=True)
class ExecutorConfig:
    """Deadlines and caps used during a batch pass"""

    submit_timeout_seconds: float = 10.0
    session_open_timeout_seconds: float = 90.0
    error_message_max_length: int = 255
    # Extra time the session gets to fill the form before its own wait starts
    submit_grace_seconds: float = 30.0
    heartbeat_interval_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExecutorConfig":
        return cls(
            submit_timeout_seconds=settings.SUBMIT_TIMEOUT_SECONDS,
            session_open_timeout_seconds=settings.SESSION_OPEN_TIMEOUT_SECONDS,
            error_message_max_length=settings.ERROR_MESSAGE_MAX_LENGTH,
            submit_grace_seconds=settings.SUBMIT_GRACE_SECONDS,
            heartbeat_interval_seconds=settings.BATCH_HEARTBEAT_SECONDS,
        )

    @property
    def item_deadline_seconds(self) -> float:
        return self.submit_timeout_seconds + self.submit_grace_seconds


@dataclass
class BatchRunResult:
    """Summary of one executor call"""

    batch_id: UUID
    status: Optional[BatchStatus] = None
    skipped: bool = False
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    error_message: Optional[str] = None
    failed_candidates: List[UUID] = field(default_factory=list)


class BatchExecutor:
    """Claims a batch, drives its pending candidates, and finalizes its status

    Candidate outcomes never fail the batch. Precondition and session
    errors fail the batch and leave unattempted candidates pending. Anything
    else (for example the state store going away) propagates to the caller
    and leaves the batch in processing for the reconciliation sweep.
    """

    def __init__(
        self,
        store: IBatchStateStore,
        credentials: ICredentialProvider,
        session: IRemoteSession,
        gate: SessionGate,
        config: Optional[ExecutorConfig] = None,
    ):
        self._store = store
        self._credentials = credentials
        self._session = session
        self._gate = gate
        self.config = config or ExecutorConfig()

    async def execute(self, batch_id: UUID) -> BatchRunResult:
        """Process one dequeued batch id"""
        batch = await self._store.claim_batch(batch_id)
        if batch is None:
            existing = await self._store.get_batch(batch_id)
            if existing is None:
                logger.warning(f"⏭️  Batch {batch_id} not found, skipping")
                return BatchRunResult(batch_id=batch_id, skipped=True)
            logger.info(f"⏭️  Batch {batch_id} is {existing.status.value}, skipping")
            return BatchRunResult(batch_id=batch_id, status=existing.status, skipped=True)

        result = BatchRunResult(batch_id=batch_id, status=BatchStatus.PROCESSING)
        batch_error: Optional[ErrorMessage] = None
        heartbeat = asyncio.create_task(self._heartbeat(batch_id))
        try:
            candidates = await self._store.list_pending_candidates(batch_id)
            logger.info(f"🔄 Processing batch {batch_id} ({len(candidates)} pending candidate(s))")
            if candidates:
                await self._run_pass(batch, candidates, result)
            else:
                logger.info(f"Batch {batch_id} has no pending candidates")
        except (BatchPreconditionError, SessionError) as e:
            batch_error = ErrorMessage.from_exception(e, self.config.error_message_max_length)
            logger.error(f"❌ Batch {batch_id} aborted: {batch_error}")
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)

        return await self._finalize(batch, result, batch_error)

    async def _heartbeat(self, batch_id: UUID) -> None:
        """Keep a live batch out of the reconciliation sweep"""
        while True:
            await asyncio.sleep(self.config.heartbeat_interval_seconds)
            try:
                await self._store.touch_batch(batch_id)
            except Exception as e:
                logger.warning(f"Heartbeat for batch {batch_id} failed: {e}")

    async def _run_pass(self, batch: Batch, candidates: List[Candidate], result: BatchRunResult) -> None:
        credential = await self._credentials.resolve(batch.credential_ref)

        async with self._gate.hold(batch.id):
            try:
                handle = await self._open(credential, batch)
            finally:
                del credential

            try:
                for candidate in candidates:
                    await self._attempt(handle, candidate, result)
            finally:
                await self._close(handle)

    async def _open(self, credential, batch: Batch) -> SessionHandle:
        timeout = self.config.session_open_timeout_seconds
        try:
            # On timeout wait_for also waits for open() to clean up, still inside the gate
            handle = await asyncio.wait_for(self._session.open(credential, batch.portal_ref), timeout=timeout)
        except SessionError:
            raise
        except asyncio.TimeoutError as e:
            raise ConnectivityError(f"Timed out after {timeout:g}s opening the portal session") from e
        except Exception as e:
            raise ConnectivityError(f"Could not open portal session: {e}") from e

        logger.info(f"🔐 Session {handle.session_id} opened for batch {batch.id}")
        return handle

    async def _attempt(self, handle: SessionHandle, candidate: Candidate, result: BatchRunResult) -> None:
        result.attempted += 1
        started = time.monotonic()
        outcome = await self._submit(handle, candidate)
        elapsed = time.monotonic() - started

        if isinstance(outcome, Accepted):
            await self._store.mark_candidate_success(candidate.id)
            result.succeeded += 1
            logger.info(f"✅ Candidate {candidate.external_id} accepted ({elapsed:.1f}s)")
            return

        error = ErrorMessage.from_text(outcome.reason, self.config.error_message_max_length)
        await self._store.mark_candidate_failed(candidate.id, error)
        result.failed += 1
        result.failed_candidates.append(candidate.id)
        logger.warning(f"⚠️  Candidate {candidate.external_id} {outcome.describe()}: {error}")

        try:
            await self._session.recover(handle)
        except SessionRecoveryError:
            raise
        except Exception as e:
            raise SessionRecoveryError(
                f"Could not return to the candidate list after {candidate.external_id}: {e}"
            ) from e

    async def _submit(self, handle: SessionHandle, candidate: Candidate) -> Outcome:
        """One submission; every failure mode is folded into an Outcome"""
        deadline = self.config.item_deadline_seconds
        try:
            return await asyncio.wait_for(
                self._session.submit_item(handle, candidate.to_payload()),
                timeout=deadline,
            )
        except asyncio.TimeoutError:
            return TimedOut(after_seconds=deadline)
        except Exception as e:
            logger.opt(exception=e).debug(f"Submission raised for candidate {candidate.external_id}")
            return Rejected(reason=str(e).strip() or type(e).__name__)

    async def _close(self, handle: SessionHandle) -> None:
        try:
            await self._session.close(handle)
            logger.info(f"Session {handle.session_id} closed")
        except Exception as e:
            logger.warning(f"Error closing session {handle.session_id}: {e}")

    async def _finalize(
        self,
        batch: Batch,
        result: BatchRunResult,
        batch_error: Optional[ErrorMessage],
    ) -> BatchRunResult:
        if batch_error is not None:
            final = await self._store.fail_batch(batch.id, batch_error)
            result.error_message = str(batch_error)
        else:
            final = await self._store.complete_batch(batch.id)

        if final is None:
            # Someone else finalized it (reconciliation sweep)
            current = await self._store.get_batch(batch.id)
            result.status = current.status if current else None
            logger.warning(f"Batch {batch.id} was no longer processing at finalize")
            return result

        result.status = final.status
        duration = final.duration_seconds()
        logger.info(
            f"🏁 Batch {batch.id} {final.status.value}: "
            f"{result.succeeded} succeeded, {result.failed} failed, "
            f"{result.attempted} attempted"
            + (f" in {duration:.1f}s" if duration is not None else "")
        )
        return result
