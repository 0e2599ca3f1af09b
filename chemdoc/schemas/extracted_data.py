from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union, get_args


FieldType = Literal[
    "text", "number", "date", "email", "phone", "textarea",
    "select", "boolean", "table", "heading", "paragraph",
]
SectionType = Literal["table", "heading", "field_group", "list", "other"]

FIELD_TYPES = get_args(FieldType)
SECTION_TYPES = get_args(SectionType)

ScalarValue = Union[bool, int, float, str, None]
TableValue = List[List[str]]


class CamelModel(BaseModel):
    """Serialized with the camelCase keys the client and the AI prompt use"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _coerce_table(value: Any) -> TableValue:
    # Cells become strings; the row/column shape is kept exactly as given
    if not isinstance(value, list):
        raise ValueError("table value must be a 2-D array")
    table = []
    for row_index, row in enumerate(value):
        if not isinstance(row, list):
            raise ValueError(f"table row {row_index} is not an array")
        table.append(["" if cell is None else str(cell) for cell in row])
    return table


class FieldLayout(CamelModel):
    structure_type: str = "field"
    level: Optional[int] = Field(None, ge=1, le=6)
    columns: Optional[int] = Field(None, ge=0)
    rows: Optional[int] = Field(None, ge=0)
    order: int = 0


class ExtractedField(CamelModel):
    id: str = Field(..., min_length=1)
    label: str
    value: Union[TableValue, ScalarValue] = None
    type: FieldType = "text"
    section: str = Field(..., min_length=1)
    required: bool = False
    options: Optional[List[str]] = None
    layout: Optional[FieldLayout] = None

    @model_validator(mode="before")
    @classmethod
    def coerce_value(cls, data):
        if not isinstance(data, dict):
            return data
        value = data.get("value")
        if data.get("type") == "table":
            data = dict(data)
            data["value"] = _coerce_table(value)
        elif isinstance(value, list):
            # A flat list of scalars outside a table is shown as one value
            if any(isinstance(item, (list, dict)) for item in value):
                raise ValueError("only table fields may hold nested arrays")
            data = dict(data)
            data["value"] = ", ".join("" if item is None else str(item) for item in value)
        return data

    @property
    def order(self) -> int:
        return self.layout.order if self.layout else 0

    @property
    def is_table(self) -> bool:
        return self.type == "table"


class DetectedSection(CamelModel):
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    content: str = ""
    type: SectionType = "field_group"
    preview: str = ""
    fields: List[str] = Field(default_factory=list)
    selected: bool = True
    order: int = 0


class DocumentStructure(CamelModel):
    has_headers: bool = False
    has_tables: bool = False
    has_lists: bool = False


class ExtractionMetadata(CamelModel):
    extracted_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    total_fields: int = Field(0, ge=0)


class ExtractedData(CamelModel):
    document_type: str = "Unknown Document"
    detected_sections: List[DetectedSection] = Field(..., min_length=1)
    fields: List[ExtractedField] = Field(default_factory=list)
    structure: DocumentStructure = Field(default_factory=DocumentStructure)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    @field_validator("fields")
    @classmethod
    def unique_field_ids(cls, fields: List[ExtractedField]) -> List[ExtractedField]:
        seen = set()
        for field in fields:
            if field.id in seen:
                raise ValueError(f"duplicate field id '{field.id}'")
            seen.add(field.id)
        return fields

    def get_field(self, field_id: str) -> Optional[ExtractedField]:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    def as_json(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys, the form that gets persisted"""
        return self.model_dump(by_alias=True, mode="json")


# Deprecated fixed shape from the first extraction prompt. Only read, then upgraded.

class LegacyModel(CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)


class LegacyDocumentInfo(LegacyModel):
    type: Optional[str] = None
    id: Optional[str] = None
    issue_date: Optional[str] = None
    revision: Optional[str] = None


class LegacyProductInfo(LegacyModel):
    name: Optional[str] = None
    cas_number: Optional[str] = None
    formula: Optional[str] = None
    purity: Optional[str] = None
    grade: Optional[str] = None


class LegacySupplierInfo(LegacyModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    emergency: Optional[str] = None


class LegacyHazard(LegacyModel):
    category: str = ""
    signal: str = ""
    pictogram: Optional[str] = None


class LegacyExtractedData(LegacyModel):
    document: LegacyDocumentInfo = Field(default_factory=LegacyDocumentInfo)
    product: LegacyProductInfo = Field(default_factory=LegacyProductInfo)
    supplier: LegacySupplierInfo = Field(default_factory=LegacySupplierInfo)
    hazards: List[LegacyHazard] = Field(default_factory=list)
