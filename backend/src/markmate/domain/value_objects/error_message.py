"""
ErrorMessage Value Object
Bounded error text stored on failed batches and candidates
"""
from dataclasses import dataclass

DEFAULT_MAX_LENGTH = 255


@dataclass(frozen=True)
class ErrorMessage:
    """Error text truncated to a fixed cap - immutable"""

    value: str
    max_length: int = DEFAULT_MAX_LENGTH

    def __post_init__(self):
        """Validate cap and truncate"""
        if self.max_length < 1:
            raise ValueError("Error message cap must be at least 1")
        if len(self.value) > self.max_length:
            object.__setattr__(self, "value", self.value[: self.max_length])

    @classmethod
    def from_exception(cls, exc: BaseException, max_length: int = DEFAULT_MAX_LENGTH) -> "ErrorMessage":
        """Build from an exception, falling back to its type name when the text is empty"""
        text = str(exc).strip() or type(exc).__name__
        return cls(text, max_length)

    @classmethod
    def from_text(cls, text: str, max_length: int = DEFAULT_MAX_LENGTH) -> "ErrorMessage":
        return cls(text.strip() or "Unknown error", max_length)

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"ErrorMessage({self.value!r})"
