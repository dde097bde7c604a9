"""
Candidate Domain Entity
Person-level record within a batch, with its submission payload
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple
from uuid import UUID

from ..enums import CandidateStatus


@dataclass(frozen=True)
class CandidateMark:
    """Theory/practical marks for one NOS unit"""

    nos_identifier: str
    theory_marks: Optional[int] = None
    practical_marks: Optional[int] = None


@dataclass(frozen=True)
class CandidatePayload:
    """Everything the remote session needs to submit one candidate"""

    candidate_id: UUID
    external_id: str
    name: Optional[str] = None
    marks: Tuple[CandidateMark, ...] = ()


@dataclass(frozen=True)
class Candidate:
    """Candidate domain entity - immutable snapshot"""

    id: UUID
    batch_id: UUID
    external_id: str
    status: CandidateStatus = CandidateStatus.PENDING

    name: Optional[str] = None
    row_index: int = 0
    error_message: Optional[str] = None
    marks: Tuple[CandidateMark, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """Validate candidate data"""
        if not self.external_id or not self.external_id.strip():
            raise ValueError("Candidate external id cannot be empty")

    def to_payload(self) -> CandidatePayload:
        return CandidatePayload(
            candidate_id=self.id,
            external_id=self.external_id,
            name=self.name,
            marks=self.marks,
        )

    def __str__(self) -> str:
        return f"Candidate({self.external_id}, status={self.status.value})"
