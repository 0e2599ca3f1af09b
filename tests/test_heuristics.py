from chemdoc.services.heuristics import build_heuristic_extraction
from chemdoc.services.normalizer import normalize_extraction

from conftest import COA_TEXT


def test_lines_split_into_fields_headings_and_paragraphs():
    data = normalize_extraction(build_heuristic_extraction(COA_TEXT))

    info = [field for field in data.fields if field.section == "Document Information"]
    content = [field for field in data.fields if field.section == "Content"]

    assert [(field.label, field.value) for field in info] == [
        ("Product Name", "Sodium Chloride"),
        ("CAS Number", "7647-14-5"),
        ("Batch Number", "NC-2024-001"),
    ]
    assert [field.type for field in content] == ["heading", "heading", "paragraph"]
    assert content[0].value == "Certificate of Analysis"
    assert [section.title for section in data.detected_sections] == ["Document Information", "Content"]
    assert data.metadata.confidence == 0.1


def test_both_sections_always_have_a_field():
    data = normalize_extraction(build_heuristic_extraction("--- Page 1 ---\n\nhttps://example.com/coa"))

    for section in data.detected_sections:
        assert section.fields
    assert data.get_field(data.detected_sections[0].fields[0]).value == "https://example.com/coa"


def test_page_markers_and_urls_are_not_fields():
    raw = build_heuristic_extraction("--- Page 1 ---\nSee http://example.com/sds for details\nGrade: ACS")

    labels = [field["label"] for field in raw["fields"]]
    assert "--- Page 1 ---" not in labels
    assert labels[0] == "Grade"
