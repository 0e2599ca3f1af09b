# chemdoc/services/errors.py
"""
Exception taxonomy shared by the extraction, storage and generation services
"""
from typing import Optional


class ChemDocError(Exception):
    """Base class for all service-level errors"""
    pass


class NoApiKeyError(ChemDocError):
    """Settings hold neither a plaintext nor an encoded API key"""

    def __init__(self, message: str = "No API key configured. Please configure your API key in settings."):
        super().__init__(message)


class AiApiError(ChemDocError):
    """The AI provider answered with a non-2xx status or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(AiApiError):
    """A single 429 answer; retried by the backoff loop, never surfaced directly"""

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, status_code=429)


class RateLimitExhaustedError(ChemDocError):
    """HTTP 429 persisted after every allowed attempt"""

    def __init__(self, attempts: int):
        super().__init__(f"AI provider rate limit persisted after {attempts} attempts")
        self.attempts = attempts


class InsufficientTextError(ChemDocError):
    """Text extraction produced (almost) nothing to send to the AI"""

    def __init__(self, length: int, minimum: int):
        super().__init__(
            f"Extracted text is too short ({length} characters, minimum {minimum}). "
            "The PDF may be scanned or empty."
        )
        self.length = length
        self.minimum = minimum


class TextExtractionError(ChemDocError):
    """The PDF could not be opened or read"""
    pass


class NoJsonFoundError(ChemDocError):
    """The AI response did not contain a JSON object"""
    pass


class SchemaValidationError(ChemDocError):
    """Extraction output could not be validated into ExtractedData"""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class GenerationError(ChemDocError):
    """The renderer could not traverse the extracted data"""
    pass


class StoredFileNotFoundError(ChemDocError):
    """A document id has no backing PDF blob"""

    def __init__(self, document_id: str):
        super().__init__(f"No stored file for document {document_id}")
        self.document_id = document_id


class DocumentNotFoundError(ChemDocError):
    def __init__(self, document_id: str):
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class InvalidStatusTransitionError(ChemDocError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move document from '{current}' to '{target}'")
        self.current = current
        self.target = target


class NoExtractedDataError(ChemDocError):
    """The document has not been processed into ExtractedData yet"""

    def __init__(self, document_id: str):
        super().__init__(f"Document {document_id} has no extracted data")
        self.document_id = document_id


class FieldNotFoundError(ChemDocError):
    def __init__(self, field_id: str):
        super().__init__(f"Field {field_id} not found")
        self.field_id = field_id


# Errors raised while turning a PDF into ExtractedData; these mark the document as failed
EXTRACTION_ERRORS = (
    AiApiError,
    RateLimitExhaustedError,
    TextExtractionError,
    InsufficientTextError,
    NoJsonFoundError,
    SchemaValidationError,
)
