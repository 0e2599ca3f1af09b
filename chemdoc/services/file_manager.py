import os
import logging
import aiofiles

from .errors import StoredFileNotFoundError

logger = logging.getLogger(__name__)


class FileManager:
    """Uploaded PDFs stored flat as <document id>.pdf"""

    def __init__(self, upload_dir: str):
        self.upload_dir = upload_dir
        self._ensure_upload_dir()

    def _ensure_upload_dir(self):
        """Ensure upload directory exists"""
        os.makedirs(self.upload_dir, exist_ok=True)

    def get_file_path(self, document_id: str) -> str:
        return os.path.join(self.upload_dir, f"{document_id}.pdf")

    async def save_upload(self, document_id: str, content: bytes) -> str:
        """Save uploaded bytes and return the file path"""
        file_path = self.get_file_path(document_id)

        async with aiofiles.open(file_path, 'wb') as f:
            await f.write(content)

        return file_path

    def file_exists(self, document_id: str) -> bool:
        return os.path.isfile(self.get_file_path(document_id))

    def require_file(self, document_id: str) -> str:
        """Path of the stored PDF, or StoredFileNotFoundError"""
        file_path = self.get_file_path(document_id)
        if not os.path.isfile(file_path):
            raise StoredFileNotFoundError(document_id)
        return file_path

    def delete_file(self, document_id: str) -> bool:
        """Delete a stored PDF. Failures are logged, never raised."""
        file_path = self.get_file_path(document_id)
        try:
            os.remove(file_path)
            return True
        except FileNotFoundError:
            logger.info(f"No stored file to delete for document {document_id}")
            return False
        except OSError as e:
            logger.warning(f"Could not delete file for document {document_id}: {e}")
            return False
