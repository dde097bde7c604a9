"""Domain Entities - Core business objects"""

from .batch import Batch
from .candidate import Candidate, CandidateMark, CandidatePayload
from .credential import PlaintextCredential

__all__ = ["Batch", "Candidate", "CandidateMark", "CandidatePayload", "PlaintextCredential"]
