"""ORM Models Package"""

from .assessor_credential import AssessorCredentialModel
from .upload_batch import UploadBatchModel
from .candidate import CandidateModel, CandidateMarkModel

__all__ = [
    "AssessorCredentialModel",
    "UploadBatchModel",
    "CandidateModel",
    "CandidateMarkModel",
]
