"""
Candidate ORM Models
Candidates within an upload batch and their per-NOS marks
"""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from markmate.core.config import ERROR_MESSAGE_COLUMN_LENGTH
from markmate.core.database import Base
from markmate.domain.enums import CandidateStatus
from .upload_batch import enum_values


class CandidateModel(Base):
    """Candidates table"""

    __tablename__ = "candidates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    batch_id = Column(Uuid, ForeignKey("upload_batches.id", ondelete="CASCADE"), nullable=False, index=True)

    # Identity on the portal
    external_id = Column(String(255), nullable=False, index=True)
    candidate_name = Column(String(255), nullable=True)
    row_index = Column(Integer, nullable=False, default=0)  # Spreadsheet row, defines processing order

    status = Column(
        SQLEnum(CandidateStatus, name="candidate_status", values_callable=enum_values),
        nullable=False,
        default=CandidateStatus.PENDING,
        index=True,
    )
    error_message = Column(String(ERROR_MESSAGE_COLUMN_LENGTH), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    batch = relationship("UploadBatchModel", back_populates="candidates")
    marks = relationship(
        "CandidateMarkModel",
        back_populates="candidate",
        order_by="CandidateMarkModel.nos_identifier",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<CandidateModel {self.external_id} - {self.status.value}>"


class CandidateMarkModel(Base):
    """Per-NOS marks for a candidate"""

    __tablename__ = "candidate_marks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    candidate_id = Column(Uuid, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)

    nos_identifier = Column(String(50), nullable=False)  # e.g. NOS1
    theory_marks = Column(Integer, nullable=True)
    practical_marks = Column(Integer, nullable=True)

    candidate = relationship("CandidateModel", back_populates="marks")

    def __repr__(self):
        return f"<CandidateMarkModel {self.nos_identifier} T={self.theory_marks} P={self.practical_marks}>"
