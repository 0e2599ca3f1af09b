from pydantic import ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from ..models.document import DocumentStatus
from .extracted_data import CamelModel


class DocumentRecord(CamelModel):
    """A stored document as every storage backend hands it out"""
    id: str
    original_file_name: str
    extracted_data: Optional[Dict[str, Any]] = None
    company_data: Optional[Dict[str, Any]] = None
    status: DocumentStatus = DocumentStatus.UPLOADED
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentResponse(DocumentRecord):
    pass


class DocumentUpdate(CamelModel):
    original_file_name: Optional[str] = Field(None, min_length=1, max_length=255)
    extracted_data: Optional[Dict[str, Any]] = None
    company_data: Optional[Dict[str, Any]] = None
    status: Optional[DocumentStatus] = None

    model_config = ConfigDict(extra="forbid")


class GenerateRequest(CamelModel):
    format: Literal["pdf", "docx"] = "pdf"


class SectionSelectionRequest(CamelModel):
    section_ids: List[str]


class CellUpdateRequest(CamelModel):
    value: str


class MessageResponse(CamelModel):
    message: str
