"""Remote session contract"""

from .interfaces import Accepted, IRemoteSession, Outcome, Rejected, SessionHandle, TimedOut

__all__ = ["Accepted", "IRemoteSession", "Outcome", "Rejected", "SessionHandle", "TimedOut"]
