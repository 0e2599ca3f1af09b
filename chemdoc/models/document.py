from sqlalchemy import Column, String, DateTime, JSON, Enum
from datetime import datetime
import uuid
import enum

from ..database import Base


class DocumentStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"
    COMPLETED = "completed"


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    original_file_name = Column(String(255), nullable=False)
    extracted_data = Column(JSON, nullable=True)
    company_data = Column(JSON, nullable=True)
    status = Column(
        Enum(DocumentStatus, values_callable=lambda e: [member.value for member in e]),
        default=DocumentStatus.UPLOADED,
        nullable=False
    )
    error_message = Column(String(500), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Document(original_file_name={self.original_file_name}, status={self.status})>"
