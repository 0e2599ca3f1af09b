"""
Validators for uploaded supplier PDFs
"""
from typing import Optional, Tuple

PDF_MAGIC = b"%PDF-"
PDF_CONTENT_TYPES = ("application/pdf", "application/x-pdf")


def validate_pdf_filename(filename: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate PDF filename
    Returns: (is_valid, error_message)
    """
    if not filename:
        return False, "Filename cannot be empty"

    if not filename.lower().endswith('.pdf'):
        return False, "Only PDF files are allowed"

    # Check for invalid characters
    invalid_chars = '<>:"|?*'
    if any(char in filename for char in invalid_chars):
        return False, f"Filename contains invalid characters: {invalid_chars}"

    # Check length
    if len(filename) > 255:
        return False, "Filename is too long"

    return True, None


def validate_content_type(content_type: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Browsers sometimes send octet-stream for PDFs; only reject types that
    are clearly something else.
    """
    if not content_type or content_type == "application/octet-stream":
        return True, None
    if content_type.split(";")[0].strip().lower() in PDF_CONTENT_TYPES:
        return True, None
    return False, "Only PDF files are allowed"


def validate_pdf_content(content: bytes, max_size: int) -> Tuple[bool, Optional[str]]:
    """
    Check size and PDF header of the uploaded bytes
    Returns: (is_valid, error_message)
    """
    if not content:
        return False, "Uploaded file is empty"

    if len(content) > max_size:
        return False, f"File size exceeds maximum allowed size of {max_size / 1024 / 1024:.0f}MB"

    if not content.startswith(PDF_MAGIC):
        return False, "File is not a valid PDF"

    return True, None
