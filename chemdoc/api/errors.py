"""
Service errors to HTTP responses
"""
import logging

from fastapi import HTTPException, status

from ..services.errors import (
    AiApiError,
    ChemDocError,
    DocumentNotFoundError,
    FieldNotFoundError,
    InvalidStatusTransitionError,
    NoApiKeyError,
    NoExtractedDataError,
    RateLimitExhaustedError,
    StoredFileNotFoundError,
)

logger = logging.getLogger(__name__)

# First match wins; anything unlisted is a 500
ERROR_STATUS_CODES = (
    (NoApiKeyError, status.HTTP_400_BAD_REQUEST),
    (DocumentNotFoundError, status.HTTP_404_NOT_FOUND),
    (StoredFileNotFoundError, status.HTTP_404_NOT_FOUND),
    (NoExtractedDataError, status.HTTP_404_NOT_FOUND),
    (FieldNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT),
    (RateLimitExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (AiApiError, status.HTTP_502_BAD_GATEWAY),
)


def error_detail(error: Exception) -> dict:
    return {"message": str(error), "error": type(error).__name__}


def http_error(error: ChemDocError, status_code: int = None) -> HTTPException:
    """HTTPException with a {"message", "error"} detail"""
    if status_code is None:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        for error_type, code in ERROR_STATUS_CODES:
            if isinstance(error, error_type):
                status_code = code
                break

    if status_code >= 500:
        logger.error(f"❌ {type(error).__name__}: {error}")
    return HTTPException(status_code=status_code, detail=error_detail(error))
