# chemdoc/api/v1/documents.py
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from typing import List, Optional
from urllib.parse import quote
import logging

from ...config import settings
from ...schemas.document import (
    DocumentResponse,
    CellUpdateRequest,
    DocumentUpdate,
    GenerateRequest,
    MessageResponse,
    SectionSelectionRequest,
)
from ...services.document_processor import DocumentProcessor
from ...services.errors import ChemDocError, SchemaValidationError
from ...utils.validators import validate_content_type, validate_pdf_content, validate_pdf_filename
from ..deps import get_processor
from ..errors import error_detail, http_error

router = APIRouter()
logger = logging.getLogger(__name__)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": message, "error": "ValidationError"},
    )


def _content_disposition(file_name: str) -> str:
    ascii_name = file_name.encode("ascii", "ignore").decode("ascii").replace('"', "") or "document"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(file_name)}"


# ============ Upload & listing ============

@router.post("/upload", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    processor: DocumentProcessor = Depends(get_processor)
):
    """Store an uploaded supplier PDF; the new document starts as uploaded"""
    is_valid, error = validate_pdf_filename(file.filename)
    if not is_valid:
        raise _bad_request(error)

    is_valid, error = validate_content_type(file.content_type)
    if not is_valid:
        raise _bad_request(error)

    content = await file.read()
    if len(content) > settings.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={
                "message": f"File size exceeds maximum allowed size of {settings.MAX_FILE_SIZE / 1024 / 1024:.0f}MB",
                "error": "ValidationError",
            },
        )

    is_valid, error = validate_pdf_content(content, settings.MAX_FILE_SIZE)
    if not is_valid:
        raise _bad_request(error)
    if not processor.extractor.pdf_processor.is_valid_pdf(content):
        raise _bad_request("File is not a readable PDF")

    try:
        return await processor.upload(file.filename, content)
    except OSError as e:
        logger.error(f"❌ Could not store upload {file.filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail(e),
        )


@router.get("", response_model=List[DocumentResponse])
async def list_documents(processor: DocumentProcessor = Depends(get_processor)):
    """All documents, newest first"""
    return processor.store.list_documents()


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(document_id: str, processor: DocumentProcessor = Depends(get_processor)):
    try:
        return processor.get(document_id)
    except ChemDocError as e:
        raise http_error(e)


# ============ Processing ============

@router.post("/{document_id}/process", response_model=DocumentResponse)
async def process_document(document_id: str, processor: DocumentProcessor = Depends(get_processor)):
    """
    Extract structured data from the stored PDF.

    Blocking work (PDF parsing, AI calls with rate-limit backoff) runs in the
    threadpool. On failure the document is left in status error.
    """
    try:
        return await run_in_threadpool(processor.process, document_id)
    except ChemDocError as e:
        raise http_error(e)


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: str,
    update: DocumentUpdate,
    processor: DocumentProcessor = Depends(get_processor)
):
    try:
        return processor.update(document_id, update)
    except SchemaValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={**error_detail(e), "errors": e.errors},
        )
    except ChemDocError as e:
        raise http_error(e)


@router.post("/{document_id}/complete", response_model=DocumentResponse)
async def complete_document(document_id: str, processor: DocumentProcessor = Depends(get_processor)):
    try:
        return processor.complete(document_id)
    except ChemDocError as e:
        raise http_error(e)


# ============ Review edits ============

@router.post("/{document_id}/sections/select", response_model=DocumentResponse)
async def select_sections(
    document_id: str,
    request: SectionSelectionRequest,
    processor: DocumentProcessor = Depends(get_processor)
):
    try:
        return processor.select_sections(document_id, request.section_ids)
    except ChemDocError as e:
        raise http_error(e)


@router.post("/{document_id}/fields/{field_id}/rows", response_model=DocumentResponse)
async def add_table_row(
    document_id: str,
    field_id: str,
    processor: DocumentProcessor = Depends(get_processor)
):
    try:
        return processor.add_table_row(document_id, field_id)
    except ValueError as e:
        raise _bad_request(str(e))
    except ChemDocError as e:
        raise http_error(e)


@router.delete("/{document_id}/fields/{field_id}/rows/{row_index}", response_model=DocumentResponse)
async def remove_table_row(
    document_id: str,
    field_id: str,
    row_index: int,
    processor: DocumentProcessor = Depends(get_processor)
):
    """Header row and the last data row are kept; removing them changes nothing"""
    try:
        return processor.remove_table_row(document_id, field_id, row_index)
    except ValueError as e:
        raise _bad_request(str(e))
    except ChemDocError as e:
        raise http_error(e)


@router.put("/{document_id}/fields/{field_id}/rows/{row_index}/cells/{column_index}", response_model=DocumentResponse)
async def update_table_cell(
    document_id: str,
    field_id: str,
    row_index: int,
    column_index: int,
    request: CellUpdateRequest,
    processor: DocumentProcessor = Depends(get_processor)
):
    try:
        return processor.update_table_cell(document_id, field_id, row_index, column_index, request.value)
    except (ValueError, IndexError) as e:
        raise _bad_request(str(e))
    except ChemDocError as e:
        raise http_error(e)


# ============ Output & delete ============

@router.post("/{document_id}/generate")
async def generate_document(
    document_id: str,
    request: Optional[GenerateRequest] = None,
    processor: DocumentProcessor = Depends(get_processor)
):
    """Company-branded PDF or DOCX as an attachment"""
    output_format = request.format if request else "pdf"
    try:
        content, file_name, media_type = await run_in_threadpool(processor.generate, document_id, output_format)
    except ChemDocError as e:
        raise http_error(e)

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": _content_disposition(file_name)},
    )


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(document_id: str, processor: DocumentProcessor = Depends(get_processor)):
    try:
        processor.delete(document_id)
    except ChemDocError as e:
        raise http_error(e)
    return MessageResponse(message=f"Document {document_id} deleted")
