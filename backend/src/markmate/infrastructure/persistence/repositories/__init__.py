"""Repository implementations"""

from .assessor_credential import AssessorCredentialRepository
from .candidate import CandidateRepository
from .upload_batch import UploadBatchRepository

__all__ = ["AssessorCredentialRepository", "CandidateRepository", "UploadBatchRepository"]
