"""Job queue contract"""

from .interfaces import IJobQueue, QueuedJob

__all__ = ["IJobQueue", "QueuedJob"]
