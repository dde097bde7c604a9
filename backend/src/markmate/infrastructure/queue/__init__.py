"""
Job queue and session-lock backends
"""
from .memory_job_queue import InMemoryJobQueue
from .redis_job_queue import RedisJobQueue
from .redis_session_gate import RedisSessionGate

__all__ = ["InMemoryJobQueue", "RedisJobQueue", "RedisSessionGate"]
