# chemdoc/services/heuristics.py
"""
Local structuring of raw document text, used when EXTRACTION_FALLBACK is
"heuristic" and the AI provider cannot be used at all.
"""
import re
from datetime import datetime
from typing import Any, Dict, List

from .pdf_processor import PAGE_MARKER

DOCUMENT_INFORMATION = "Document Information"
CONTENT = "Content"

KEY_VALUE_LINE = re.compile(r"^([^:]{1,80}?)\s*:\s*(.+)$")
SHORT_LINE_LENGTH = 60
MAX_FIELDS = 200


def build_heuristic_extraction(text: str) -> Dict[str, Any]:
    """
    Split text into lines and guess a structure:

    - "key: value" lines become text fields under "Document Information"
    - short lines become headings under "Content"
    - long lines become paragraphs under "Content"

    Both sections always get at least one field. The result is raw extraction
    JSON and still goes through normalize_extraction.
    """
    info_fields: List[Dict[str, Any]] = []
    content_fields: List[Dict[str, Any]] = []
    first_line = ""

    for raw_line in text.splitlines():
        line = " ".join(raw_line.split())
        if not line or PAGE_MARKER.match(line):
            continue
        first_line = first_line or line

        match = KEY_VALUE_LINE.match(line)
        if match and not match.group(2).startswith("//"):  # "http://..." is not a key
            info_fields.append({
                "label": match.group(1),
                "value": match.group(2),
                "type": "text",
                "section": DOCUMENT_INFORMATION,
                "required": False,
                "layout": {"structureType": "field", "order": len(info_fields) + 1},
            })
        elif len(line) <= SHORT_LINE_LENGTH:
            content_fields.append({
                "label": line,
                "value": line,
                "type": "heading",
                "section": CONTENT,
                "required": False,
                "layout": {"structureType": "heading", "level": 2, "order": len(content_fields) + 1},
            })
        else:
            content_fields.append({
                "label": "Paragraph",
                "value": line,
                "type": "paragraph",
                "section": CONTENT,
                "required": False,
                "layout": {"structureType": "paragraph", "order": len(content_fields) + 1},
            })

        if len(info_fields) + len(content_fields) >= MAX_FIELDS:
            break

    if not info_fields:
        info_fields.append({
            "label": "Document Title",
            "value": first_line or "Untitled Document",
            "type": "text",
            "section": DOCUMENT_INFORMATION,
            "required": False,
            "layout": {"structureType": "field", "order": 1},
        })
    if not content_fields:
        content_fields.append({
            "label": "Paragraph",
            "value": "No additional content detected.",
            "type": "paragraph",
            "section": CONTENT,
            "required": False,
            "layout": {"structureType": "paragraph", "order": 1},
        })

    fields = info_fields + content_fields
    return {
        "documentType": "Unknown Document",
        "detectedSections": [DOCUMENT_INFORMATION, CONTENT],
        "fields": fields,
        "metadata": {
            "extractedAt": datetime.utcnow().isoformat(),
            "confidence": 0.1,
            "totalFields": len(fields),
        },
    }
