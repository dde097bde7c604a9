"""
AssessorCredential ORM Model
Portal login with the password stored as a Fernet token
"""
import uuid
from sqlalchemy import Column, String, Text, DateTime, Uuid
from sqlalchemy.sql import func

from markmate.core.database import Base


class AssessorCredentialModel(Base):
    """Assessor credentials table"""

    __tablename__ = "assessor_credentials"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    username = Column(String(255), nullable=False)
    encrypted_password = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AssessorCredentialModel {self.id} - {self.username}>"
