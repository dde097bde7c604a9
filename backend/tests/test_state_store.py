"""
Tests for the SQLAlchemy state store and stale batch reconciliation
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from uuid import uuid4

from markmate.application.services.reconciliation import INTERRUPTED_MESSAGE, BatchReconciler
from markmate.core.database import session_scope
from markmate.domain.entities import CandidateMark
from markmate.domain.enums import BatchStatus, CandidateStatus
from markmate.domain.value_objects import ErrorMessage
from markmate.infrastructure.persistence.models import UploadBatchModel


async def backdate(session_factory, batch_id, when: datetime) -> None:
    """Pretend the batch started, and last showed signs of life, at the given time"""
    async with session_scope(session_factory) as session:
        await session.execute(
            update(UploadBatchModel)
            .where(UploadBatchModel.id == batch_id)
            .values(started_at=when, heartbeat_at=when)
        )


class TestBatchTransitions:
    """Conditional status updates"""

    @pytest.mark.asyncio
    async def test_claim_moves_pending_to_processing_once(self, seeder, store):
        batch = await seeder.batch(["C1"])

        claimed = await store.claim_batch(batch.id)
        again = await store.claim_batch(batch.id)

        assert claimed.status == BatchStatus.PROCESSING
        assert claimed.started_at is not None
        assert again is None

    @pytest.mark.asyncio
    async def test_claim_unknown_batch(self, store):
        assert await store.claim_batch(uuid4()) is None

    @pytest.mark.asyncio
    async def test_complete_requires_processing(self, seeder, store):
        batch = await seeder.batch(["C1"])

        assert await store.complete_batch(batch.id) is None

        await store.claim_batch(batch.id)
        completed = await store.complete_batch(batch.id)

        assert completed.status == BatchStatus.COMPLETE
        assert completed.completed_at >= completed.started_at
        assert await store.fail_batch(batch.id, ErrorMessage("late")) is None

    @pytest.mark.asyncio
    async def test_fail_records_message(self, seeder, store):
        batch = await seeder.batch(["C1"])
        await store.claim_batch(batch.id)

        failed = await store.fail_batch(batch.id, ErrorMessage("Portal unreachable"))

        assert failed.status == BatchStatus.FAILED
        assert failed.error_message == "Portal unreachable"
        assert failed.completed_at >= failed.started_at


class TestCandidates:
    """Candidate loading and write-once terminal status"""

    @pytest.mark.asyncio
    async def test_pending_candidates_in_row_order_with_sorted_marks(self, seeder, store):
        marks = (CandidateMark("NOS2", 10, 20), CandidateMark("NOS1", 30, 40))
        batch = await seeder.batch(["C1", "C2", "C3"], marks=marks)

        candidates = await store.list_pending_candidates(batch.id)

        assert [c.external_id for c in candidates] == ["C1", "C2", "C3"]
        assert [m.nos_identifier for m in candidates[0].marks] == ["NOS1", "NOS2"]
        assert candidates[0].marks[0].theory_marks == 30

    @pytest.mark.asyncio
    async def test_terminal_status_is_write_once(self, seeder, store):
        batch = await seeder.batch(["C1"])
        candidate = (await store.list_pending_candidates(batch.id))[0]

        assert await store.mark_candidate_failed(candidate.id, ErrorMessage("bad")) is True
        assert await store.mark_candidate_success(candidate.id) is False

        stored = (await store.list_candidates(batch.id))[0]
        assert stored.status == CandidateStatus.FAILED
        assert stored.error_message == "bad"
        assert await store.list_pending_candidates(batch.id) == []

    @pytest.mark.asyncio
    async def test_count_candidates(self, seeder, store):
        batch = await seeder.batch(["C1", "C2", "C3"])
        c1, c2, _ = await store.list_pending_candidates(batch.id)
        await store.mark_candidate_success(c1.id)
        await store.mark_candidate_failed(c2.id, ErrorMessage("bad"))

        counts = await store.count_candidates(batch.id)

        assert counts == {
            CandidateStatus.PENDING: 1,
            CandidateStatus.SUCCESS: 1,
            CandidateStatus.FAILED: 1,
        }


class TestReconciliation:
    """Stale processing batches are failed, candidates untouched"""

    @pytest.mark.asyncio
    async def test_fails_stale_processing_batches(self, seeder, store):
        stale = await seeder.batch(["C1"])
        fresh = await seeder.batch(["C1"])
        pending = await seeder.batch(["C1"])
        await store.claim_batch(stale.id)
        await store.claim_batch(fresh.id)

        reconciler = BatchReconciler(store, timedelta(minutes=60))
        later = datetime.now(timezone.utc) + timedelta(minutes=61)

        failed = await reconciler.reconcile_stale_batches(now=later)

        assert set(failed) == {stale.id, fresh.id}
        final = await store.get_batch(stale.id)
        assert final.status == BatchStatus.FAILED
        assert final.error_message == INTERRUPTED_MESSAGE
        assert (await store.get_batch(pending.id)).status == BatchStatus.PENDING
        assert [c.status for c in await store.list_candidates(stale.id)] == [CandidateStatus.PENDING]

    @pytest.mark.asyncio
    async def test_recent_processing_batch_is_left_alone(self, seeder, store):
        batch = await seeder.batch(["C1"])
        await store.claim_batch(batch.id)

        failed = await BatchReconciler(store, timedelta(minutes=60)).reconcile_stale_batches()

        assert failed == []
        assert (await store.get_batch(batch.id)).status == BatchStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_long_batch_with_recent_heartbeat_is_left_alone(self, seeder, store, session_factory):
        live = await seeder.batch(["C1"])
        dead = await seeder.batch(["C1"])
        await store.claim_batch(live.id)
        await store.claim_batch(dead.id)
        three_hours_ago = datetime.now(timezone.utc) - timedelta(hours=3)
        await backdate(session_factory, live.id, three_hours_ago)
        await backdate(session_factory, dead.id, three_hours_ago)

        assert await store.touch_batch(live.id) is True

        failed = await BatchReconciler(store, timedelta(minutes=60)).reconcile_stale_batches()

        assert failed == [dead.id]
        kept = await store.get_batch(live.id)
        assert kept.status == BatchStatus.PROCESSING
        assert kept.heartbeat_at > kept.started_at

    @pytest.mark.asyncio
    async def test_touch_only_applies_to_processing_batches(self, seeder, store):
        batch = await seeder.batch(["C1"])

        assert await store.touch_batch(batch.id) is False
        await store.claim_batch(batch.id)
        await store.complete_batch(batch.id)
        assert await store.touch_batch(batch.id) is False
        assert await store.touch_batch(uuid4()) is False
