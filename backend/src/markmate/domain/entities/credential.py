"""
Credential Domain Entity
Decrypted portal login, held only for the duration of a session-open call
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PlaintextCredential:
    """Portal username/password pair; the password never appears in repr"""

    username: str
    password: str = field(repr=False)

    def __str__(self) -> str:
        return f"PlaintextCredential(username={self.username!r})"
