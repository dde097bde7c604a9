"""Repository contracts"""

from .interfaces import IBatchStateStore

__all__ = ["IBatchStateStore"]
