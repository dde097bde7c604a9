"""
Domain Enums
Status enumerations for batches and candidates
"""
from enum import Enum


class BatchStatus(str, Enum):
    """Upload batch status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class CandidateStatus(str, Enum):
    """Candidate submission status (no processing sub-state)"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
