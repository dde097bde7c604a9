"""
Dispatcher - Long-lived consumers of the upload batch queue
Each consumer hands a dequeued batch to the executor and waits for it to finish
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Set

from loguru import logger

from markmate.application.services.batch_executor import BatchExecutor, BatchRunResult
from markmate.application.services.jobs.rate_limiter import DequeueRateLimiter
from markmate.application.services.queue.interfaces import IJobQueue, QueuedJob
from markmate.application.services.reconciliation import BatchReconciler
from markmate.core.config import Settings


@dataclass(frozen=True)
class WorkerConfig:
    """Consumer settings"""

    concurrency: int = 1
    dequeue_timeout_seconds: float = 5.0
    limiter_max: int = 1
    limiter_duration_seconds: float = 1.0
    error_backoff_seconds: float = 5.0  # pause after the queue itself fails

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkerConfig":
        return cls(
            concurrency=settings.WORKER_CONCURRENCY,
            dequeue_timeout_seconds=settings.DEQUEUE_BLOCK_TIMEOUT_SECONDS,
            limiter_max=settings.WORKER_LIMITER_MAX,
            limiter_duration_seconds=settings.WORKER_LIMITER_DURATION_SECONDS,
        )


class Dispatcher:
    """Background worker for processing queued batches"""

    def __init__(
        self,
        queue: IJobQueue,
        executor: BatchExecutor,
        config: Optional[WorkerConfig] = None,
        rate_limiter: Optional[DequeueRateLimiter] = None,
        reconciler: Optional[BatchReconciler] = None,
    ):
        """
        Initialize dispatcher

        Args:
            queue: Source of batch ids
            executor: Runs one batch per dequeued id
            config: Consumer count and dequeue timing
            rate_limiter: Shared by every consumer loop
            reconciler: Optional sweep run once before consuming
        """
        self.queue = queue
        self.executor = executor
        self.config = config or WorkerConfig()
        self.rate_limiter = rate_limiter or DequeueRateLimiter(
            self.config.limiter_max, self.config.limiter_duration_seconds
        )
        self.reconciler = reconciler
        self.running = False
        self.processed = 0
        self._consumers: Dict[int, asyncio.Task] = {}
        self._busy: Set[int] = set()

    async def start(self) -> None:
        """Start the consumer loops"""
        if self.running:
            return

        if self.reconciler is not None:
            await self.reconciler.reconcile_stale_batches()

        self.running = True
        for index in range(self.config.concurrency):
            self._consumers[index] = asyncio.create_task(self._consume(index), name=f"batch-consumer-{index}")

        logger.info(
            f"🚀 Dispatcher started (consumers={self.config.concurrency}, "
            f"limit={self.rate_limiter.max_requests}/{self.rate_limiter.duration_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop consuming; batches already in progress are allowed to finish"""
        if not self.running and not self._consumers:
            return

        logger.info("Stopping dispatcher...")
        self.running = False

        busy = []
        for index, task in self._consumers.items():
            if index in self._busy:
                busy.append(task)
            else:
                task.cancel()

        if busy:
            logger.info(f"Waiting for {len(busy)} in-flight batch(es) to complete...")
        await asyncio.gather(*self._consumers.values(), return_exceptions=True)
        self._consumers.clear()
        logger.info("🛑 Dispatcher stopped")

    async def process_next(self) -> Optional[BatchRunResult]:
        """Admit, dequeue and run a single batch; None when the queue stayed empty"""
        await self.rate_limiter.acquire()
        job = await self.queue.dequeue(self.config.dequeue_timeout_seconds)
        if job is None:
            return None
        return await self._handle(job)

    async def _consume(self, index: int) -> None:
        while self.running:
            await self.rate_limiter.acquire()
            if not self.running:
                break

            try:
                job = await self.queue.dequeue(self.config.dequeue_timeout_seconds)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"❌ Dequeue failed on consumer {index}: {e}")
                await asyncio.sleep(self.config.error_backoff_seconds)
                continue

            if job is None:
                continue

            self._busy.add(index)
            try:
                await self._handle(job)
            finally:
                self._busy.discard(index)

    async def _handle(self, job: QueuedJob) -> Optional[BatchRunResult]:
        try:
            result = await self.executor.execute(job.batch_id)
            self.processed += 1
            return result
        except Exception:
            logger.exception(f"❌ Batch {job.batch_id} failed with an unexpected error")
            return None
        finally:
            try:
                await self.queue.ack(job)
            except Exception as e:
                logger.error(f"Could not acknowledge batch {job.batch_id}: {e}")
