# Schemas module
from .extracted_data import (
    ExtractedData,
    ExtractedField,
    DetectedSection,
    FieldLayout,
    DocumentStructure,
    ExtractionMetadata,
    LegacyExtractedData,
    FIELD_TYPES,
    SECTION_TYPES
)
from .document import (
    DocumentRecord,
    DocumentResponse,
    DocumentUpdate,
    GenerateRequest,
    SectionSelectionRequest,
    CellUpdateRequest,
    MessageResponse
)
from .settings import (
    SettingsRecord,
    SettingsUpdate,
    SettingsResponse,
    ConnectionTestResponse
)

__all__ = [
    # Extracted data schemas
    "ExtractedData",
    "ExtractedField",
    "DetectedSection",
    "FieldLayout",
    "DocumentStructure",
    "ExtractionMetadata",
    "LegacyExtractedData",
    "FIELD_TYPES",
    "SECTION_TYPES",

    # Document schemas
    "DocumentRecord",
    "DocumentResponse",
    "DocumentUpdate",
    "GenerateRequest",
    "SectionSelectionRequest",
    "CellUpdateRequest",
    "MessageResponse",

    # Settings schemas
    "SettingsRecord",
    "SettingsUpdate",
    "SettingsResponse",
    "ConnectionTestResponse"
]
