"""
UploadBatch ORM Model
SQLAlchemy model for uploaded spreadsheets queued for portal submission
"""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from markmate.core.config import ERROR_MESSAGE_COLUMN_LENGTH
from markmate.core.database import Base
from markmate.domain.enums import BatchStatus


def enum_values(enum_cls):
    """Persist enum values ("pending") rather than member names ("PENDING")"""
    return [member.value for member in enum_cls]


class UploadBatchModel(Base):
    """Upload batch table"""

    __tablename__ = "upload_batches"

    # Primary Key
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)

    # Upload details
    file_name = Column(String(255), nullable=True)
    portal_batch_id = Column(String(255), nullable=True)  # Batch identifier on the portal side
    assessor_credential_id = Column(Uuid, ForeignKey("assessor_credentials.id"), nullable=True)

    # Processing state
    status = Column(
        SQLEnum(BatchStatus, name="batch_status", values_callable=enum_values),
        nullable=False,
        default=BatchStatus.PENDING,
        index=True,
    )
    error_message = Column(String(ERROR_MESSAGE_COLUMN_LENGTH), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    heartbeat_at = Column(DateTime(timezone=True), nullable=True)  # Touched by the executor while the batch is live

    candidates = relationship(
        "CandidateModel",
        back_populates="batch",
        order_by="CandidateModel.row_index",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<UploadBatchModel {self.id} - {self.status.value}>"
