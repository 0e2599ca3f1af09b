# chemdoc/services/storage.py
"""
Document and settings storage.

Every backend implements DocumentStore and hands out detached
DocumentRecord / SettingsRecord copies, so callers can never mutate
stored state by accident.
"""
import abc
import copy
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..models.document import Document, DocumentStatus
from ..models.settings import AppSettings, ConnectionStatus
from ..schemas.document import DocumentRecord
from ..schemas.settings import SettingsRecord

# Columns an update may touch; id and created_at are immutable
UPDATABLE_FIELDS = ("original_file_name", "extracted_data", "company_data", "status", "error_message")


class DocumentStore(abc.ABC):
    """Storage interface for documents and the settings singleton"""

    # Documents
    @abc.abstractmethod
    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        ...

    @abc.abstractmethod
    def list_documents(self) -> List[DocumentRecord]:
        """All documents, newest first"""

    @abc.abstractmethod
    def create_document(
        self,
        original_file_name: str,
        status: DocumentStatus = DocumentStatus.UPLOADED,
        extracted_data: Optional[Dict[str, Any]] = None,
        company_data: Optional[Dict[str, Any]] = None,
    ) -> DocumentRecord:
        ...

    @abc.abstractmethod
    def update_document(self, document_id: str, **changes: Any) -> Optional[DocumentRecord]:
        """
        Apply a partial update. processed_at is stamped whenever the update
        sets status to processed, regardless of the previous status.
        """

    @abc.abstractmethod
    def delete_document(self, document_id: str) -> bool:
        ...

    # Settings
    @abc.abstractmethod
    def get_settings(self) -> Optional[SettingsRecord]:
        ...

    @abc.abstractmethod
    def replace_settings(
        self,
        api_key: Optional[str] = None,
        encrypted_api_key: Optional[str] = None,
    ) -> SettingsRecord:
        """Replace the key material; connection status drops back to testing"""

    @abc.abstractmethod
    def record_connection_test(self, connected: bool) -> Optional[SettingsRecord]:
        ...

    @staticmethod
    def _check_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
        changes = copy.deepcopy(changes)
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update document fields: {sorted(unknown)}")
        if "status" in changes and changes["status"] is not None:
            changes["status"] = DocumentStatus(changes["status"])
        return changes


class MemStorage(DocumentStore):
    """Dict-backed store; state lives only as long as the process"""

    def __init__(self):
        self._documents: Dict[str, DocumentRecord] = {}
        self._settings: Optional[SettingsRecord] = None

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document else None

    def list_documents(self) -> List[DocumentRecord]:
        documents = sorted(self._documents.values(), key=lambda d: d.created_at, reverse=True)
        return [document.model_copy(deep=True) for document in documents]

    def create_document(
        self,
        original_file_name: str,
        status: DocumentStatus = DocumentStatus.UPLOADED,
        extracted_data: Optional[Dict[str, Any]] = None,
        company_data: Optional[Dict[str, Any]] = None,
    ) -> DocumentRecord:
        now = datetime.utcnow()
        status = DocumentStatus(status)
        document = DocumentRecord(
            id=str(uuid.uuid4()),
            original_file_name=original_file_name,
            extracted_data=extracted_data,
            company_data=company_data,
            status=status,
            processed_at=now if status == DocumentStatus.PROCESSED else None,
            created_at=now,
        )
        self._documents[document.id] = document
        return document.model_copy(deep=True)

    def update_document(self, document_id: str, **changes: Any) -> Optional[DocumentRecord]:
        existing = self._documents.get(document_id)
        if existing is None:
            return None

        changes = self._check_changes(changes)
        if changes.get("status") == DocumentStatus.PROCESSED:
            changes["processed_at"] = datetime.utcnow()

        updated = existing.model_copy(update=changes, deep=True)
        self._documents[document_id] = updated
        return updated.model_copy(deep=True)

    def delete_document(self, document_id: str) -> bool:
        return self._documents.pop(document_id, None) is not None

    def get_settings(self) -> Optional[SettingsRecord]:
        return self._settings.model_copy(deep=True) if self._settings else None

    def replace_settings(
        self,
        api_key: Optional[str] = None,
        encrypted_api_key: Optional[str] = None,
    ) -> SettingsRecord:
        settings_id = self._settings.id if self._settings else str(uuid.uuid4())
        self._settings = SettingsRecord(
            id=settings_id,
            api_key=api_key or None,
            encrypted_api_key=encrypted_api_key or None,
            last_tested=None,
            connection_status=ConnectionStatus.TESTING,
        )
        return self._settings.model_copy(deep=True)

    def record_connection_test(self, connected: bool) -> Optional[SettingsRecord]:
        if self._settings is None:
            return None
        self._settings = self._settings.model_copy(update={
            "last_tested": datetime.utcnow(),
            "connection_status": ConnectionStatus.CONNECTED if connected else ConnectionStatus.FAILED,
        })
        return self._settings.model_copy(deep=True)


class SqlStorage(DocumentStore):
    """SQLAlchemy-backed store; one short session per operation"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _session(self) -> Session:
        return self.session_factory()

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self._session() as db:
            document = db.get(Document, document_id)
            return DocumentRecord.model_validate(document) if document else None

    def list_documents(self) -> List[DocumentRecord]:
        with self._session() as db:
            documents = db.query(Document).order_by(Document.created_at.desc()).all()
            return [DocumentRecord.model_validate(document) for document in documents]

    def create_document(
        self,
        original_file_name: str,
        status: DocumentStatus = DocumentStatus.UPLOADED,
        extracted_data: Optional[Dict[str, Any]] = None,
        company_data: Optional[Dict[str, Any]] = None,
    ) -> DocumentRecord:
        now = datetime.utcnow()
        status = DocumentStatus(status)
        with self._session() as db:
            document = Document(
                id=str(uuid.uuid4()),
                original_file_name=original_file_name,
                extracted_data=extracted_data,
                company_data=company_data,
                status=status,
                processed_at=now if status == DocumentStatus.PROCESSED else None,
                created_at=now,
            )
            db.add(document)
            db.commit()
            db.refresh(document)
            return DocumentRecord.model_validate(document)

    def update_document(self, document_id: str, **changes: Any) -> Optional[DocumentRecord]:
        changes = self._check_changes(changes)
        with self._session() as db:
            document = db.get(Document, document_id)
            if document is None:
                return None

            for field, value in changes.items():
                setattr(document, field, value)
            if changes.get("status") == DocumentStatus.PROCESSED:
                document.processed_at = datetime.utcnow()

            db.commit()
            db.refresh(document)
            return DocumentRecord.model_validate(document)

    def delete_document(self, document_id: str) -> bool:
        with self._session() as db:
            document = db.get(Document, document_id)
            if document is None:
                return False
            db.delete(document)
            db.commit()
            return True

    def get_settings(self) -> Optional[SettingsRecord]:
        with self._session() as db:
            row = db.query(AppSettings).first()
            return SettingsRecord.model_validate(row) if row else None

    def replace_settings(
        self,
        api_key: Optional[str] = None,
        encrypted_api_key: Optional[str] = None,
    ) -> SettingsRecord:
        with self._session() as db:
            row = db.query(AppSettings).first()
            if row is None:
                row = AppSettings(id=str(uuid.uuid4()))
                db.add(row)
            row.api_key = api_key or None
            row.encrypted_api_key = encrypted_api_key or None
            row.last_tested = None
            row.connection_status = ConnectionStatus.TESTING
            db.commit()
            db.refresh(row)
            return SettingsRecord.model_validate(row)

    def record_connection_test(self, connected: bool) -> Optional[SettingsRecord]:
        with self._session() as db:
            row = db.query(AppSettings).first()
            if row is None:
                return None
            row.last_tested = datetime.utcnow()
            row.connection_status = ConnectionStatus.CONNECTED if connected else ConnectionStatus.FAILED
            db.commit()
            db.refresh(row)
            return SettingsRecord.model_validate(row)
