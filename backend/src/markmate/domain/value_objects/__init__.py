"""Value Objects - Immutable objects defined by their attributes"""

from .error_message import ErrorMessage

__all__ = ["ErrorMessage"]
