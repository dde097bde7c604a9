"""
Batch Reconciliation
Finalizes batches left in processing by a worker that died mid-pass
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from loguru import logger

from markmate.application.repositories.interfaces import IBatchStateStore
from markmate.domain.value_objects import ErrorMessage

INTERRUPTED_MESSAGE = "Batch processing was interrupted before completion"


class BatchReconciler:
    """Fails processing batches whose executor stopped sending heartbeats

    A live executor touches its batch on a fixed interval, so a long batch is
    never mistaken for an interrupted one. Candidates are left as they are.
    """

    def __init__(self, store: IBatchStateStore, stale_after: timedelta, error_message_max_length: int = 255):
        self.store = store
        self.stale_after = stale_after
        self.error_message_max_length = error_message_max_length

    async def reconcile_stale_batches(self, now: Optional[datetime] = None) -> List[UUID]:
        """Fail every processing batch with no heartbeat since now - stale_after"""
        cutoff = (now or datetime.now(timezone.utc)) - self.stale_after
        error = ErrorMessage.from_text(INTERRUPTED_MESSAGE, self.error_message_max_length)

        failed = await self.store.fail_stale_batches(cutoff, error)
        if failed:
            logger.warning(f"🧹 Reconciled {len(failed)} interrupted batch(es): {[str(b) for b in failed]}")
        else:
            logger.info("No interrupted batches to reconcile")
        return failed
