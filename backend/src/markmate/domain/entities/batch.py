"""
Batch Domain Entity
One uploaded spreadsheet queued for portal submission
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from ..enums import BatchStatus


@dataclass(frozen=True)
class Batch:
    """Upload batch domain entity - immutable snapshot"""

    id: UUID
    status: BatchStatus

    # Opaque references resolved by collaborators
    credential_ref: Optional[UUID] = None
    portal_ref: Optional[str] = None

    file_name: Optional[str] = None
    error_message: Optional[str] = None

    # Timestamps
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    heartbeat_at: Optional[datetime] = None

    def is_pending(self) -> bool:
        return self.status == BatchStatus.PENDING

    def duration_seconds(self) -> Optional[float]:
        """Processing time once the batch has finished"""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def __str__(self) -> str:
        return f"Batch({self.id}, status={self.status.value})"
