from datetime import datetime

import pytest

from conftest import make_pdf


def _upload(api_client, content, name="coa.pdf", content_type="application/pdf"):
    return api_client.post("/documents/upload", files={"file": (name, content, content_type)})


@pytest.fixture
def with_api_key(api_client):
    response = api_client.post("/settings", json={"apiKey": "sk-123"})
    assert response.status_code == 200


def test_upload_process_generate_flow(api_client, with_api_key, coa_pdf):
    response = _upload(api_client, coa_pdf)
    assert response.status_code == 201
    document = response.json()
    assert document["status"] == "uploaded"
    assert document["originalFileName"] == "coa.pdf"
    assert document["extractedData"] is None

    response = api_client.post(f"/documents/{document['id']}/process")
    assert response.status_code == 200
    processed = response.json()
    assert processed["status"] == "processed"
    assert processed["processedAt"] is not None
    assert datetime.fromisoformat(processed["processedAt"]) >= datetime.fromisoformat(processed["createdAt"])
    assert processed["extractedData"]["metadata"]["totalFields"] == 3

    response = api_client.post(f"/documents/{document['id']}/generate", json={"format": "pdf"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="coa_company.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF-")

    response = api_client.post(f"/documents/{document['id']}/complete")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"


def test_failed_processing_marks_document_error(api_client, with_api_key, ai_client):
    ai_client.completions._responses[:] = ["I could not find anything useful."]
    document = _upload(api_client, make_pdf(["Product Name: Acetone"])).json()

    response = api_client.post(f"/documents/{document['id']}/process")

    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "NoJsonFoundError"
    stored = api_client.get(f"/documents/{document['id']}").json()
    assert stored["status"] == "error"
    assert stored["extractedData"] is None
    assert stored["errorMessage"]


def test_process_without_api_key(api_client, coa_pdf):
    document = _upload(api_client, coa_pdf).json()

    response = api_client.post(f"/documents/{document['id']}/process")

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "NoApiKeyError"
    assert api_client.get(f"/documents/{document['id']}").json()["status"] == "uploaded"


@pytest.mark.parametrize(
    "name, content, content_type, status_code",
    [
        ("notes.txt", b"%PDF-1.4", "text/plain", 400),
        ("coa.pdf", b"plain text", "application/pdf", 400),
        ("coa.pdf", b"", "application/pdf", 400),
        ("coa.pdf", b"%PDF-1.4 broken", "application/pdf", 400),
    ],
)
def test_upload_rejects_non_pdf(api_client, name, content, content_type, status_code):
    response = _upload(api_client, content, name=name, content_type=content_type)
    assert response.status_code == status_code


def test_upload_too_large(api_client, monkeypatch, coa_pdf):
    from chemdoc.config import settings

    monkeypatch.setattr(settings, "MAX_FILE_SIZE", 100)
    assert _upload(api_client, coa_pdf).status_code == 413


def test_patch_validates_extracted_data(api_client, with_api_key, coa_pdf):
    document = _upload(api_client, coa_pdf).json()
    processed = api_client.post(f"/documents/{document['id']}/process").json()

    edited = processed["extractedData"]
    edited["fields"][1]["value"] = "7647-14-5 (verified)"
    response = api_client.patch(f"/documents/{document['id']}", json={"extractedData": edited})
    assert response.status_code == 200
    assert response.json()["extractedData"]["fields"][1]["value"] == "7647-14-5 (verified)"

    edited["fields"][2]["value"] = "not a table"
    response = api_client.patch(f"/documents/{document['id']}", json={"extractedData": edited})
    assert response.status_code == 422
    stored = api_client.get(f"/documents/{document['id']}").json()
    assert stored["extractedData"]["fields"][2]["type"] == "table"


def test_patch_null_extracted_data_keeps_data(api_client, with_api_key, coa_pdf):
    document = _upload(api_client, coa_pdf).json()
    processed = api_client.post(f"/documents/{document['id']}/process").json()

    response = api_client.patch(f"/documents/{document['id']}", json={"extractedData": None})

    assert response.status_code == 200
    assert response.json()["status"] == "processed"
    assert response.json()["extractedData"] == processed["extractedData"]
    assert api_client.post(f"/documents/{document['id']}/generate", json={"format": "pdf"}).status_code == 200


def test_patch_rejects_invalid_status_change(api_client, coa_pdf):
    document = _upload(api_client, coa_pdf).json()

    response = api_client.patch(f"/documents/{document['id']}", json={"status": "completed"})

    assert response.status_code == 409


def test_generate_without_extracted_data(api_client, coa_pdf):
    document = _upload(api_client, coa_pdf).json()

    response = api_client.post(f"/documents/{document['id']}/generate", json={"format": "docx"})

    assert response.status_code == 404


def test_review_edits(api_client, with_api_key, coa_pdf):
    document = _upload(api_client, coa_pdf).json()
    processed = api_client.post(f"/documents/{document['id']}/process").json()
    sections = processed["extractedData"]["detectedSections"]

    response = api_client.post(f"/documents/{document['id']}/fields/field_3/rows")
    assert len(response.json()["extractedData"]["fields"][2]["value"]) == 3

    response = api_client.delete(f"/documents/{document['id']}/fields/field_3/rows/0")
    assert len(response.json()["extractedData"]["fields"][2]["value"]) == 3

    response = api_client.delete(f"/documents/{document['id']}/fields/field_3/rows/2")
    assert len(response.json()["extractedData"]["fields"][2]["value"]) == 2

    response = api_client.delete(f"/documents/{document['id']}/fields/cas_number/rows/1")
    assert response.status_code == 400

    response = api_client.post(f"/documents/{document['id']}/fields/unknown/rows")
    assert response.status_code == 404

    response = api_client.put(
        f"/documents/{document['id']}/fields/field_3/rows/1/cells/2", json={"value": "99.9%"}
    )
    assert response.json()["extractedData"]["fields"][2]["value"][1][2] == "99.9%"
    response = api_client.put(
        f"/documents/{document['id']}/fields/field_3/rows/9/cells/0", json={"value": "x"}
    )
    assert response.status_code == 400

    response = api_client.post(
        f"/documents/{document['id']}/sections/select",
        json={"sectionIds": [sections[0]["id"]]},
    )
    assert [section["selected"] for section in response.json()["extractedData"]["detectedSections"]] == [True, False]


def test_list_get_delete(api_client, coa_pdf, file_manager):
    first = _upload(api_client, coa_pdf, name="first.pdf").json()
    second = _upload(api_client, coa_pdf, name="second.pdf").json()

    listed = api_client.get("/documents").json()
    assert {document["id"] for document in listed} == {first["id"], second["id"]}

    response = api_client.delete(f"/documents/{first['id']}")
    assert response.status_code == 200
    assert not file_manager.file_exists(first["id"])
    assert api_client.get(f"/documents/{first['id']}").status_code == 404
    assert api_client.delete(f"/documents/{first['id']}").status_code == 404


def test_health(api_client):
    assert api_client.get("/health").json()["status"] == "healthy"
    assert api_client.get("/health/live").json() == {"status": "alive"}
    ready = api_client.get("/health/ready").json()
    assert ready["status"] == "ready"
    assert ready["checks"]["storage"]["backend"] == "memory"
