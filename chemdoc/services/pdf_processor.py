# chemdoc/services/pdf_processor.py
import fitz  # PyMuPDF
from typing import BinaryIO, Union
import io
import logging
import re

from .errors import TextExtractionError

logger = logging.getLogger(__name__)

# Line written in front of every page's text
PAGE_MARKER = re.compile(r"^--- Page \d+ ---$")

PdfSource = Union[str, bytes, BinaryIO]


class PDFProcessor:
    """Reads the embedded text layer of supplier PDFs"""

    def __init__(self, page_limit: int = 50):
        self.page_limit = page_limit

    @staticmethod
    def _open(pdf_source: PdfSource) -> fitz.Document:
        if isinstance(pdf_source, str):
            logger.debug(f"Opening PDF file {pdf_source}")
            return fitz.open(pdf_source)
        if isinstance(pdf_source, bytes):
            return fitz.open(stream=pdf_source, filetype="pdf")
        if isinstance(pdf_source, io.IOBase):
            position = pdf_source.tell()
            data = pdf_source.read()
            pdf_source.seek(position)
            return fitz.open(stream=data, filetype="pdf")
        raise TypeError(f"Unsupported PDF source type: {type(pdf_source).__name__}")

    def extract_text(self, pdf_source: PdfSource) -> str:
        """
        Text of the first page_limit pages, in page order.

        Each non-empty page is introduced by a "--- Page N ---" line. A PDF
        that cannot be opened or read raises TextExtractionError.
        """
        try:
            with self._open(pdf_source) as doc:
                total_pages = doc.page_count
                pages = []
                for page in doc.pages(0, min(total_pages, self.page_limit)):
                    text = page.get_text()
                    if text.strip():
                        pages.append(f"--- Page {page.number + 1} ---\n{text}")
        except (RuntimeError, OSError, ValueError, TypeError) as e:
            logger.error(f"❌ Could not read PDF text: {e}")
            raise TextExtractionError(f"Failed to extract text from PDF: {e}") from e

        if total_pages > self.page_limit:
            logger.info(f"📄 Read {self.page_limit} of {total_pages} pages")
        return "\n\n".join(pages)

    def is_valid_pdf(self, pdf_bytes: bytes) -> bool:
        """True when the bytes carry a PDF header and PyMuPDF finds at least one page"""
        if not pdf_bytes.startswith(b"%PDF-"):
            logger.warning("Upload rejected: missing PDF header")
            return False

        try:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
                page_count = doc.page_count
        except (RuntimeError, OSError, ValueError) as e:
            logger.warning(f"Upload rejected: PDF could not be opened ({e})")
            return False

        logger.debug(f"Upload is a PDF with {page_count} pages")
        return page_count > 0
