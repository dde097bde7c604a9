"""
Job Queue Interfaces
FIFO channel of batch identifiers
"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(frozen=True)
class QueuedJob:
    """One delivered queue entry"""

    batch_id: UUID
    raw: str  # Serialized entry as stored, used to acknowledge it

    @staticmethod
    def encode(batch_id: UUID) -> str:
        return json.dumps({"batch_id": str(batch_id)})

    @classmethod
    def decode(cls, raw: str) -> "QueuedJob":
        """Parse a stored entry; raises ValueError for malformed entries"""
        try:
            data = json.loads(raw)
            return cls(batch_id=UUID(str(data["batch_id"])), raw=raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed queue entry: {raw!r}") from e


class IJobQueue(ABC):
    """Job queue interface"""

    @abstractmethod
    async def enqueue(self, batch_id: UUID) -> None:
        """Append a batch id to the tail of the queue"""
        pass

    @abstractmethod
    async def dequeue(self, timeout: float) -> Optional[QueuedJob]:
        """Block up to timeout seconds; each entry is delivered to exactly one caller"""
        pass

    @abstractmethod
    async def ack(self, job: QueuedJob) -> None:
        """Signal that processing of a delivered entry has finished"""
        pass

    @abstractmethod
    async def size(self) -> int:
        """Entries waiting for delivery"""
        pass

    async def close(self) -> None:
        """Release connections"""
        return None
