"""MarkMate batch worker

Long-running process that consumes the upload batch queue and submits each
batch's candidate marks to the assessment portal.

Run with:

    markmate-worker
    python -m markmate.worker

Everything is wired here from one Settings instance; nothing connects at
import time.
"""
import asyncio
import signal
import sys
from datetime import timedelta
from typing import List, Optional

import redis.asyncio as redis
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from markmate.application.services.batch_executor import BatchExecutor, ExecutorConfig
from markmate.application.services.credentials import EncryptedCredentialProvider
from markmate.application.services.dispatcher import Dispatcher, WorkerConfig
from markmate.application.services.jobs import DequeueRateLimiter, SessionGate
from markmate.application.services.portal import IRemoteSession
from markmate.application.services.queue import IJobQueue
from markmate.application.services.reconciliation import BatchReconciler
from markmate.core.config import Settings, get_settings
from markmate.core.database import close_db, create_engine, create_session_factory, health_check
from markmate.core.exceptions import DomainException, RepositoryException
from markmate.core.logging_config import configure_logging
from markmate.infrastructure.persistence.state_store import SqlAlchemyBatchStateStore
from markmate.infrastructure.portal import SeleniumPortalSession
from markmate.infrastructure.queue import InMemoryJobQueue, RedisJobQueue, RedisSessionGate
from markmate.infrastructure.security.encryption import FernetEncryptionService


def build_queue(settings: Settings) -> IJobQueue:
    if settings.QUEUE_BACKEND == "memory":
        logger.warning("Using in-memory job queue; entries are lost when the process exits")
        return InMemoryJobQueue()
    return RedisJobQueue.from_settings(settings)


def build_gate(settings: Settings) -> SessionGate:
    if settings.SESSION_LOCK_BACKEND == "redis":
        client = redis.from_url(
            settings.REDIS_URL,
            socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
        )
        return RedisSessionGate(
            client,
            settings.SESSION_LOCK_NAME,
            ttl_seconds=settings.SESSION_LOCK_TTL_SECONDS,
            max_sessions=settings.MAX_CONCURRENT_SESSIONS,
        )
    return SessionGate(settings.MAX_CONCURRENT_SESSIONS)


def build_dispatcher(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    queue: IJobQueue,
    gate: SessionGate,
    remote_session: Optional[IRemoteSession] = None,
) -> Dispatcher:
    """Assemble the executor and dispatcher from settings"""
    store = SqlAlchemyBatchStateStore(session_factory)
    credentials = EncryptedCredentialProvider(
        session_factory, FernetEncryptionService.from_settings(settings)
    )
    executor = BatchExecutor(
        store,
        credentials,
        remote_session or SeleniumPortalSession.from_settings(settings),
        gate,
        ExecutorConfig.from_settings(settings),
    )

    worker_config = WorkerConfig.from_settings(settings)
    reconciler = None
    if settings.RECONCILE_ON_STARTUP:
        reconciler = BatchReconciler(
            store,
            timedelta(minutes=settings.RECONCILE_STALE_AFTER_MINUTES),
            settings.ERROR_MESSAGE_MAX_LENGTH,
        )

    return Dispatcher(
        queue,
        executor,
        worker_config,
        DequeueRateLimiter(worker_config.limiter_max, worker_config.limiter_duration_seconds),
        reconciler,
    )


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead
            pass


async def run(settings: Optional[Settings] = None) -> None:
    """Run the worker until SIGINT/SIGTERM"""
    settings = settings or get_settings()
    configure_logging(settings)
    logger.info(f"🚀 Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")

    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    closables: List[object] = []

    try:
        if not await health_check(session_factory):
            raise RepositoryException("Database is not reachable")
        logger.info("✅ Database reachable")

        queue = build_queue(settings)
        closables.append(queue)
        gate = build_gate(settings)
        if isinstance(gate, RedisSessionGate):
            closables.append(gate)

        dispatcher = build_dispatcher(settings, session_factory, queue, gate)

        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)

        await dispatcher.start()
        await stop_event.wait()
        await dispatcher.stop()

    finally:
        logger.info("👋 Shutting down gracefully...")
        for resource in closables:
            try:
                await resource.close()
            except Exception as e:
                logger.warning(f"Error closing {type(resource).__name__}: {e}")
        await close_db(engine)
        logger.info("✅ Database connections closed")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    except DomainException as e:
        logger.error(f"❌ Worker failed to start: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
