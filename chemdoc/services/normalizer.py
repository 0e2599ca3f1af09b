# chemdoc/services/normalizer.py
"""
Normalization of raw AI extraction JSON into ExtractedData.

The raw answer is untyped and may lack field ids, sections or ordering.
normalize_extraction fills those in and validates the result; nothing
downstream ever sees the raw form. Running it on its own output changes
nothing.
"""
import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError

from ..schemas.extracted_data import (
    SECTION_TYPES,
    DetectedSection,
    ExtractedData,
    ExtractedField,
    LegacyExtractedData,
)
from .errors import SchemaValidationError

logger = logging.getLogger(__name__)

DEFAULT_SECTION_TITLES = ("Document Information", "Content")
FALLBACK_SECTION = "Document Information"
UNKNOWN_DOCUMENT_TYPE = "Unknown Document"
PREVIEW_LENGTH = 100


def normalize_extraction(raw: Any) -> ExtractedData:
    """
    Turn a raw extraction result into validated ExtractedData.

    1. fields without an id get field_<position>, collisions get a _<k> suffix
    2. sections come from detectedSections, or are grouped from the fields'
       section names, or default to "Document Information" and "Content"
    3. structure flags and metadata are derived from the fields
    4. the result is validated; any failure raises SchemaValidationError

    Table cell matrices are never reshaped.
    """
    if not isinstance(raw, dict):
        raise SchemaValidationError("Extraction result is not a JSON object")

    data = copy.deepcopy(raw)
    if _is_legacy_shape(data):
        logger.info("Upgrading fixed-shape extraction result to sections and fields")
        data = upgrade_legacy_shape(data)

    fields = data.get("fields")
    if fields is None:
        fields = []
    if not isinstance(fields, list):
        raise SchemaValidationError("'fields' must be an array")
    for index, field in enumerate(fields):
        if not isinstance(field, dict):
            raise SchemaValidationError(f"Field {index + 1} is not an object")

    _assign_field_ids(fields)
    for field in fields:
        _fill_field_defaults(field)

    sections = _build_sections(data.get("detectedSections"), fields)

    document_type = data.get("documentType")
    if not isinstance(document_type, str) or not document_type.strip():
        document_type = UNKNOWN_DOCUMENT_TYPE

    normalized = {
        "documentType": document_type.strip(),
        "detectedSections": sections,
        "fields": fields,
        "structure": _derive_structure(fields, sections),
        "metadata": _fill_metadata(data.get("metadata"), len(fields)),
    }

    try:
        return ExtractedData.model_validate(normalized)
    except ValidationError as e:
        logger.error(f"❌ Extraction result failed validation: {e}")
        raise SchemaValidationError(
            f"Extracted data failed validation with {e.error_count()} error(s): {_summarize(e)}",
            errors=e.errors(include_url=False, include_context=False),
        ) from e


def validate_extracted_data(payload: Any) -> ExtractedData:
    """Strict validation of client-edited data, without any normalization"""
    try:
        return ExtractedData.model_validate(payload)
    except ValidationError as e:
        raise SchemaValidationError(
            f"Extracted data failed validation with {e.error_count()} error(s): {_summarize(e)}",
            errors=e.errors(include_url=False, include_context=False),
        ) from e


def _summarize(error: ValidationError, limit: int = 3) -> str:
    parts = []
    for item in error.errors(include_url=False)[:limit]:
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


# ============ Field ids & defaults ============

def _usable_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _unique_id(candidate: str, seen: Set[str], reserved: Set[str]) -> str:
    if candidate not in seen and candidate not in reserved:
        return candidate
    suffix = 2
    while f"{candidate}_{suffix}" in seen or f"{candidate}_{suffix}" in reserved:
        suffix += 1
    return f"{candidate}_{suffix}"


def _assign_field_ids(fields: List[Dict[str, Any]]) -> None:
    explicit = {_usable_id(field.get("id")) for field in fields} - {None}
    seen: Set[str] = set()

    for index, field in enumerate(fields):
        given = _usable_id(field.get("id"))
        if given is not None:
            field_id = _unique_id(given, seen, explicit - {given})
        else:
            field_id = _unique_id(f"field_{index + 1}", seen, explicit)
        if field_id != field.get("id"):
            logger.debug(f"Field {index + 1} id set to {field_id}")
        field["id"] = field_id
        seen.add(field_id)


def _fill_field_defaults(field: Dict[str, Any]) -> None:
    label = field.get("label")
    if label is None or (isinstance(label, str) and not label.strip()):
        field["label"] = field["id"]
    elif not isinstance(label, str):
        field["label"] = str(label)

    section = field.get("section")
    if not isinstance(section, str) or not section.strip():
        field["section"] = FALLBACK_SECTION
    else:
        field["section"] = section.strip()

    field_type = field.get("type")
    if field_type is None:
        field["type"] = "text"
    elif isinstance(field_type, str):
        field["type"] = field_type.strip().lower()

    layout = field.get("layout")
    if isinstance(layout, dict) and "order" in layout:
        layout["order"] = _as_int(layout["order"], 0)


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


# ============ Sections ============

def _raw_section_entries(raw_sections: Any) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    if not isinstance(raw_sections, list):
        return entries

    titles: Set[str] = set()
    for entry in raw_sections:
        if isinstance(entry, str):
            entry = {"title": entry}
        if not isinstance(entry, dict):
            continue
        title = entry.get("title") or entry.get("name")
        if not isinstance(title, str) or not title.strip():
            continue
        title = title.strip()
        # The same title twice would make its fields reachable from two sections
        if title in titles:
            continue
        titles.add(title)
        entry = dict(entry)
        entry.pop("name", None)
        entry["title"] = title
        entries.append(entry)
    return entries


def _build_sections(raw_sections: Any, fields: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    entries = _raw_section_entries(raw_sections)
    known = {entry["title"] for entry in entries}

    # Every field section name gets a section, in order of first appearance
    for field in fields:
        if field["section"] not in known:
            known.add(field["section"])
            entries.append({"title": field["section"], "type": "field_group"})

    if not entries:
        entries = [{"title": title, "type": "field_group"} for title in DEFAULT_SECTION_TITLES]

    explicit_ids = {_usable_id(entry.get("id")) for entry in entries} - {None}
    seen_ids: Set[str] = set()
    sections = []
    for position, entry in enumerate(entries):
        section_fields = [field for field in fields if field["section"] == entry["title"]]

        given_id = _usable_id(entry.get("id"))
        if given_id is not None:
            section_id = _unique_id(given_id, seen_ids, explicit_ids - {given_id})
        else:
            section_id = _unique_id(f"section_{position + 1}", seen_ids, explicit_ids)
        seen_ids.add(section_id)

        section_type = entry.get("type")
        if section_type not in SECTION_TYPES:
            if section_type is not None:
                logger.debug(f"Unknown section type {section_type!r} for '{entry['title']}', using 'other'")
            section_type = "other" if section_type is not None else "field_group"

        preview = entry.get("preview")
        if not isinstance(preview, str) or not preview.strip():
            preview = _preview(section_fields)

        content = entry.get("content")
        selected = entry.get("selected")

        sections.append({
            "id": section_id,
            "title": entry["title"],
            "content": content if isinstance(content, str) else "",
            "type": section_type,
            "preview": preview,
            "fields": [field["id"] for field in section_fields],
            "selected": selected if isinstance(selected, bool) else True,
            "order": _as_int(entry.get("order"), position + 1),
        })
    return sections


def _preview(section_fields: List[Dict[str, Any]]) -> str:
    ordered = sorted(section_fields, key=_raw_order)
    for field in ordered:
        value = field.get("value")
        if value is None or isinstance(value, (list, dict)):
            continue
        text = str(value).strip()
        if text:
            return text[:PREVIEW_LENGTH]
    count = len(section_fields)
    return f"{count} field" if count == 1 else f"{count} fields"


def _raw_order(field: Dict[str, Any]) -> int:
    layout = field.get("layout")
    if isinstance(layout, dict):
        return _as_int(layout.get("order"), 0)
    return 0


# ============ Structure & metadata ============

def _derive_structure(fields: List[Dict[str, Any]], sections: List[Dict[str, Any]]) -> Dict[str, bool]:
    def structure_type(field):
        layout = field.get("layout")
        return layout.get("structureType") if isinstance(layout, dict) else None

    return {
        "hasHeaders": any(field.get("type") == "heading" for field in fields)
        or any(section["type"] == "heading" for section in sections),
        "hasTables": any(field.get("type") == "table" for field in fields),
        "hasLists": any(structure_type(field) == "list" for field in fields)
        or any(section["type"] == "list" for section in sections),
    }


def _fill_metadata(raw_metadata: Any, total_fields: int) -> Dict[str, Any]:
    metadata = raw_metadata if isinstance(raw_metadata, dict) else {}

    extracted_at = metadata.get("extractedAt")
    if not isinstance(extracted_at, str) or not extracted_at.strip():
        extracted_at = datetime.utcnow().isoformat()

    try:
        confidence = float(metadata.get("confidence", 0.0))
    except (TypeError, ValueError):
        confidence = 0.0
    if 1.0 < confidence <= 100.0:
        # Some answers give a percentage
        confidence = confidence / 100.0
    if not 0.0 <= confidence <= 1.0:
        confidence = 0.0

    return {
        "extractedAt": extracted_at,
        "confidence": confidence,
        "totalFields": total_fields,
    }


# ============ Deprecated fixed shape ============

def _is_legacy_shape(data: Dict[str, Any]) -> bool:
    return "fields" not in data and any(
        isinstance(data.get(key), dict) for key in ("document", "product", "supplier")
    )


def upgrade_legacy_shape(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map the old document/product/supplier/hazards answer onto fields and
    sections. Hazards become one table field.
    """
    try:
        legacy = LegacyExtractedData.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(f"Fixed-shape extraction result is invalid: {_summarize(e)}") from e

    blocks = [
        ("Document Information", [
            ("document_type", "Document Type", legacy.document.type, "text"),
            ("document_id", "Document ID", legacy.document.id, "text"),
            ("issue_date", "Issue Date", legacy.document.issue_date, "date"),
            ("revision", "Revision", legacy.document.revision, "text"),
        ]),
        ("Product Information", [
            ("product_name", "Product Name", legacy.product.name, "text"),
            ("cas_number", "CAS Number", legacy.product.cas_number, "text"),
            ("formula", "Formula", legacy.product.formula, "text"),
            ("purity", "Purity", legacy.product.purity, "text"),
            ("grade", "Grade", legacy.product.grade, "text"),
        ]),
        ("Supplier Information", [
            ("supplier_name", "Supplier Name", legacy.supplier.name, "text"),
            ("supplier_address", "Address", legacy.supplier.address, "textarea"),
            ("supplier_phone", "Phone", legacy.supplier.phone, "phone"),
            ("emergency_phone", "Emergency Contact", legacy.supplier.emergency, "phone"),
        ]),
    ]

    fields = []
    for section, entries in blocks:
        for order, (field_id, label, value, field_type) in enumerate(entries, start=1):
            fields.append({
                "id": field_id,
                "label": label,
                "value": value or None,
                "type": field_type,
                "section": section,
                "required": False,
                "layout": {"structureType": "field", "order": order},
            })

    if legacy.hazards:
        table = [["Category", "Signal Word", "Pictogram"]]
        table.extend([hazard.category, hazard.signal, hazard.pictogram or ""] for hazard in legacy.hazards)
        fields.append({
            "id": "hazards",
            "label": "Hazard Classification",
            "value": table,
            "type": "table",
            "section": "Hazards",
            "required": False,
            "layout": {"structureType": "table", "columns": 3, "rows": len(table), "order": 1},
        })

    return {
        "documentType": legacy.document.type or UNKNOWN_DOCUMENT_TYPE,
        "fields": fields,
        "metadata": data.get("metadata"),
    }


# ============ Ordering helpers for consumers ============

def sort_fields(fields: List[ExtractedField]) -> List[ExtractedField]:
    """Fields by layout.order (missing = 0); sorted() keeps ties in array order"""
    return sorted(fields, key=lambda field: field.order)


def group_fields_by_section(
    data: ExtractedData,
    selected_only: bool = False,
) -> List[Tuple[str, List[ExtractedField]]]:
    """
    (section title, ordered fields) pairs in detected section order.

    Field section names without a detected section are appended in order of
    first appearance. With selected_only, sections the user deselected are
    left out.
    """
    grouped: Dict[str, List[ExtractedField]] = {}
    for field in data.fields:
        grouped.setdefault(field.section, []).append(field)

    sections: List[DetectedSection] = sorted(data.detected_sections, key=lambda section: section.order)
    result = []
    seen = set()
    for section in sections:
        seen.add(section.title)
        if selected_only and not section.selected:
            continue
        result.append((section.title, sort_fields(grouped.get(section.title, []))))

    for title, section_fields in grouped.items():
        if title not in seen:
            result.append((title, sort_fields(section_fields)))
    return result
