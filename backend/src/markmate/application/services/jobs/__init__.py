"""
Job execution helpers shared by the dispatcher and executor
"""
from .rate_limiter import DequeueRateLimiter
from .session_gate import SessionGate

__all__ = ["DequeueRateLimiter", "SessionGate"]
