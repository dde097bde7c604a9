"""
Session Gate
Caps the number of live remote sessions in the process
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger


class SessionGate:
    """Semaphore held from session open until session close"""

    def __init__(self, max_sessions: int = 1):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_sessions = max_sessions
        self._semaphore = asyncio.Semaphore(max_sessions)
        self.active = 0
        self.max_active = 0

    @asynccontextmanager
    async def hold(self, batch_id: object) -> AsyncIterator[None]:
        async with self._semaphore:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            logger.debug(f"Session slot taken for batch {batch_id} ({self.active}/{self.max_sessions})")
            try:
                yield
            finally:
                self.active -= 1
                logger.debug(f"Session slot released for batch {batch_id}")
