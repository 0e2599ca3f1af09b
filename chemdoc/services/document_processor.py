# chemdoc/services/document_processor.py
"""
Document lifecycle: upload, extraction, review edits, generation and delete.

Routers call into DocumentProcessor only; it owns the status transitions and
makes sure a failed extraction never leaves partial data behind.
"""
import logging
import os
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from ..config import settings
from ..models.document import DocumentStatus
from ..schemas.document import DocumentRecord, DocumentUpdate
from ..schemas.extracted_data import ExtractedData
from ..schemas.settings import SettingsRecord
from . import table_editor
from .ai_extractor import AIExtractor
from .document_generator import MEDIA_TYPES, DocumentGenerator
from .errors import (
    EXTRACTION_ERRORS,
    AiApiError,
    DocumentNotFoundError,
    NoExtractedDataError,
    RateLimitExhaustedError,
)
from .file_manager import FileManager
from .heuristics import build_heuristic_extraction
from .normalizer import normalize_extraction, validate_extracted_data
from .status import check_transition
from .storage import DocumentStore

logger = logging.getLogger(__name__)

ERROR_MESSAGE_LENGTH = 500


class DocumentProcessor:
    def __init__(
        self,
        store: DocumentStore,
        file_manager: FileManager,
        extractor: AIExtractor,
        generator: Optional[DocumentGenerator] = None,
        fallback_policy: Optional[str] = None,
    ):
        self.store = store
        self.file_manager = file_manager
        self.extractor = extractor
        self.generator = generator or DocumentGenerator()
        self.fallback_policy = fallback_policy or settings.EXTRACTION_FALLBACK

    def get(self, document_id: str) -> DocumentRecord:
        document = self.store.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    # ============ Upload ============

    async def upload(self, original_file_name: str, content: bytes) -> DocumentRecord:
        """Create the record, then store the PDF under the record's id"""
        document = self.store.create_document(original_file_name=original_file_name)
        try:
            await self.file_manager.save_upload(document.id, content)
        except OSError:
            self.store.delete_document(document.id)
            raise

        logger.info(f"📄 Uploaded {original_file_name} as document {document.id} ({len(content)} bytes)")
        return document

    # ============ Extraction ============

    def process(self, document_id: str) -> DocumentRecord:
        """
        Run text extraction, AI structuring and normalization.

        Missing API key or stored file is reported before the status changes.
        Any failure after that marks the document as error, keeps its previous
        extractedData, and re-raises.
        """
        document = self.get(document_id)
        app_settings = self.store.get_settings()
        self.extractor.resolve_api_key(app_settings)
        file_path = self.file_manager.require_file(document_id)
        check_transition(document.status, DocumentStatus.PROCESSING)

        self.store.update_document(document_id, status=DocumentStatus.PROCESSING, error_message=None)
        logger.info(f"🔍 Processing document {document_id} ({document.original_file_name})")

        try:
            text = self.extractor.extract_text(file_path, app_settings)
            raw = self._extract_raw(text, app_settings)
            data = normalize_extraction(raw)
        except Exception as e:
            if isinstance(e, EXTRACTION_ERRORS):
                logger.error(f"❌ Processing failed for document {document_id}: {e}")
            else:
                logger.exception(f"❌ Unexpected error while processing document {document_id}")
            self.store.update_document(
                document_id,
                status=DocumentStatus.ERROR,
                error_message=str(e)[:ERROR_MESSAGE_LENGTH],
            )
            raise

        updated = self.store.update_document(
            document_id,
            extracted_data=data.as_json(),
            status=DocumentStatus.PROCESSED,
            error_message=None,
        )
        logger.info(
            f"✅ Document {document_id} processed: {data.document_type}, "
            f"{len(data.detected_sections)} sections, {len(data.fields)} fields"
        )
        return updated

    def _extract_raw(self, text: str, app_settings: Optional[SettingsRecord]) -> Dict[str, Any]:
        try:
            return self.extractor.extract_structured_data(text, app_settings)
        except (AiApiError, RateLimitExhaustedError) as e:
            if self.fallback_policy != "heuristic":
                raise
            logger.warning(f"⚠️ AI extraction unavailable ({e}), structuring text locally")
            return build_heuristic_extraction(text)

    # ============ Review ============

    def update(self, document_id: str, update: DocumentUpdate) -> DocumentRecord:
        """Partial update; extractedData is validated (null is ignored) and status changes follow the state machine"""
        document = self.get(document_id)
        changes = update.model_dump(exclude_unset=True)

        for key in ("original_file_name", "status", "extracted_data"):
            if key in changes and changes[key] is None:
                del changes[key]

        if "extracted_data" in changes:
            changes["extracted_data"] = validate_extracted_data(changes["extracted_data"]).as_json()
        if "status" in changes:
            changes["status"] = check_transition(document.status, changes["status"])

        if not changes:
            return document
        return self.store.update_document(document_id, **changes)

    def complete(self, document_id: str) -> DocumentRecord:
        document = self.get(document_id)
        status = check_transition(document.status, DocumentStatus.COMPLETED)
        logger.info(f"✅ Document {document_id} completed")
        return self.store.update_document(document_id, status=status)

    def _edit(self, document_id: str, edit: Callable[[ExtractedData], ExtractedData]) -> DocumentRecord:
        document = self.get(document_id)
        if document.extracted_data is None:
            raise NoExtractedDataError(document_id)

        data = validate_extracted_data(document.extracted_data)
        return self.store.update_document(document_id, extracted_data=edit(data).as_json())

    def add_table_row(self, document_id: str, field_id: str) -> DocumentRecord:
        return self._edit(document_id, lambda data: table_editor.add_table_row(data, field_id))

    def remove_table_row(self, document_id: str, field_id: str, row_index: int) -> DocumentRecord:
        return self._edit(document_id, lambda data: table_editor.remove_table_row(data, field_id, row_index))

    def update_table_cell(self, document_id: str, field_id: str, row_index: int, column_index: int, value: str) -> DocumentRecord:
        return self._edit(
            document_id,
            lambda data: table_editor.update_table_cell(data, field_id, row_index, column_index, value),
        )

    def select_sections(self, document_id: str, section_ids: Iterable[str]) -> DocumentRecord:
        section_ids = list(section_ids)
        return self._edit(document_id, lambda data: table_editor.select_sections(data, section_ids))

    # ============ Output ============

    def generate(self, document_id: str, output_format: str) -> Tuple[bytes, str, str]:
        """Rendered bytes, download file name and media type"""
        document = self.get(document_id)
        if document.extracted_data is None:
            raise NoExtractedDataError(document_id)

        content = self.generator.generate(document, output_format)
        base_name = os.path.splitext(document.original_file_name)[0] or "document"
        return content, f"{base_name}_company.{output_format}", MEDIA_TYPES[output_format]

    def delete(self, document_id: str) -> None:
        if not self.store.delete_document(document_id):
            raise DocumentNotFoundError(document_id)
        # The record is gone either way; a leftover file is only logged
        self.file_manager.delete_file(document_id)
        logger.info(f"🗑️ Deleted document {document_id}")
