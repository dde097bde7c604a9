"""
Remote Session Interfaces
Capability contract for one authenticated connection to the assessment portal
"""
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from markmate.domain.entities import CandidatePayload, PlaintextCredential


@dataclass
class SessionHandle:
    """Explicit session value passed to every session operation"""

    session_id: str = field(default_factory=lambda: f"session_{uuid.uuid4().hex[:12]}")
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    portal_ref: Optional[str] = None
    resource: Any = field(default=None, repr=False)  # Driver/connection owned by the implementation
    closed: bool = False


@dataclass(frozen=True)
class Accepted:
    """Portal acknowledged the submission"""

    def describe(self) -> str:
        return "accepted"


@dataclass(frozen=True)
class Rejected:
    """Portal reported an error for the submission"""

    reason: str

    def describe(self) -> str:
        return f"rejected: {self.reason}"


@dataclass(frozen=True)
class TimedOut:
    """No terminal signal arrived before the deadline"""

    after_seconds: float

    @property
    def reason(self) -> str:
        return f"Timed out after {self.after_seconds:g}s waiting for the portal to respond"

    def describe(self) -> str:
        return "timed out"


Outcome = Union[Accepted, Rejected, TimedOut]


class IRemoteSession(ABC):
    """Remote session capability interface"""

    @abstractmethod
    async def open(self, credential: PlaintextCredential, portal_ref: Optional[str] = None) -> SessionHandle:
        """Log in and position the session on the batch's candidate list.

        Raises:
            AuthError: credential rejected
            ConnectivityError: network failure or unexpected remote state
        """
        pass

    @abstractmethod
    async def submit_item(self, handle: SessionHandle, payload: CandidatePayload) -> Outcome:
        """Submit one candidate and wait (bounded) for a terminal signal"""
        pass

    @abstractmethod
    async def recover(self, handle: SessionHandle) -> None:
        """Return to the candidate list after a failed item.

        Raises:
            SessionRecoveryError: the session is no longer usable
        """
        pass

    @abstractmethod
    async def close(self, handle: SessionHandle) -> None:
        """Release the session. Idempotent; never raises for the caller to act on"""
        pass
