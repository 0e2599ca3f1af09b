import asyncio

import pytest

from chemdoc.models.document import DocumentStatus
from chemdoc.schemas.document import DocumentUpdate
from chemdoc.services.ai_extractor import AIExtractor
from chemdoc.services.document_processor import DocumentProcessor
from chemdoc.services.errors import (
    AiApiError,
    DocumentNotFoundError,
    InvalidStatusTransitionError,
    NoApiKeyError,
    NoExtractedDataError,
    NoJsonFoundError,
    RateLimitExhaustedError,
    SchemaValidationError,
    StoredFileNotFoundError,
)

from conftest import FakeAIClient, FakeClientFactory, fenced, rate_limit_error, raw_extraction, status_error


def _upload(processor, content, name="coa.pdf"):
    return asyncio.run(processor.upload(name, content))


@pytest.fixture
def configured(store):
    store.replace_settings(api_key="sk-123")
    return store


def _processor(store, file_manager, responses, fallback_policy="strict", sleeps=None):
    sleeps = [] if sleeps is None else sleeps
    extractor = AIExtractor(
        client_factory=FakeClientFactory(FakeAIClient(responses)),
        text_mode="local",
        max_attempts=2,
        sleep=sleeps.append,
    )
    return DocumentProcessor(store, file_manager, extractor, fallback_policy=fallback_policy)


def test_successful_processing(processor, configured, coa_pdf):
    document = _upload(processor, coa_pdf)
    assert document.status == DocumentStatus.UPLOADED

    processed = processor.process(document.id)

    assert processed.status == DocumentStatus.PROCESSED
    assert processed.processed_at >= processed.created_at
    assert processed.error_message is None
    assert processed.extracted_data["documentType"] == "Certificate of Analysis"
    assert [field["id"] for field in processed.extracted_data["fields"]] == ["field_1", "cas_number", "field_3"]


def test_missing_key_leaves_status_unchanged(processor, store, coa_pdf):
    document = _upload(processor, coa_pdf)

    with pytest.raises(NoApiKeyError):
        processor.process(document.id)

    assert store.get_document(document.id).status == DocumentStatus.UPLOADED


def test_missing_file_leaves_status_unchanged(processor, configured, file_manager, coa_pdf):
    document = _upload(processor, coa_pdf)
    file_manager.delete_file(document.id)

    with pytest.raises(StoredFileNotFoundError):
        processor.process(document.id)

    assert configured.get_document(document.id).status == DocumentStatus.UPLOADED


def test_unknown_document(processor):
    with pytest.raises(DocumentNotFoundError):
        processor.process("missing")


def _truncated_answer():
    answer = fenced(raw_extraction())
    return answer[:answer.index("\"cas_number\"") + 40]


def _non_list_fields_answer():
    raw = raw_extraction()
    raw["fields"] = 5
    return fenced(raw)


@pytest.mark.parametrize(
    "responses, error",
    [
        ([status_error(500)], AiApiError),
        ([rate_limit_error(), rate_limit_error()], RateLimitExhaustedError),
        (["no json here"], NoJsonFoundError),
        ([_truncated_answer()], NoJsonFoundError),
        ([_non_list_fields_answer()], SchemaValidationError),
        ([fenced({"fields": [{"label": "X", "type": "barcode"}]})], SchemaValidationError),
    ],
)
def test_failed_processing_marks_error(configured, file_manager, coa_pdf, responses, error):
    processor = _processor(configured, file_manager, responses)
    document = _upload(processor, coa_pdf)

    with pytest.raises(error):
        processor.process(document.id)

    failed = configured.get_document(document.id)
    assert failed.status == DocumentStatus.ERROR
    assert failed.extracted_data is None
    assert failed.error_message


def test_retry_after_error_keeps_previous_data_on_failure(configured, file_manager, coa_pdf):
    processor = _processor(configured, file_manager, [fenced(raw_extraction()), status_error(500)])
    document = _upload(processor, coa_pdf)
    first = processor.process(document.id)

    # processed documents cannot be re-run directly
    with pytest.raises(InvalidStatusTransitionError):
        processor.process(document.id)

    configured.update_document(document.id, status=DocumentStatus.ERROR)
    with pytest.raises(AiApiError):
        processor.process(document.id)

    after = configured.get_document(document.id)
    assert after.status == DocumentStatus.ERROR
    assert after.extracted_data == first.extracted_data


def test_heuristic_fallback_on_api_error(configured, file_manager, coa_pdf):
    processor = _processor(configured, file_manager, [status_error(503)], fallback_policy="heuristic")
    document = _upload(processor, coa_pdf)

    processed = processor.process(document.id)

    assert processed.status == DocumentStatus.PROCESSED
    titles = [section["title"] for section in processed.extracted_data["detectedSections"]]
    assert titles == ["Document Information", "Content"]
    assert all(section["fields"] for section in processed.extracted_data["detectedSections"])


def test_heuristic_fallback_does_not_mask_parse_errors(configured, file_manager, coa_pdf):
    processor = _processor(configured, file_manager, ["no json here"], fallback_policy="heuristic")
    document = _upload(processor, coa_pdf)

    with pytest.raises(NoJsonFoundError):
        processor.process(document.id)
    assert configured.get_document(document.id).status == DocumentStatus.ERROR


def test_update_validates_extracted_data(processor, configured, coa_pdf):
    document = processor.process(_upload(processor, coa_pdf).id)
    edited = document.extracted_data
    edited["fields"][0]["value"] = "Potassium Chloride"

    updated = processor.update(document.id, DocumentUpdate(extracted_data=edited))
    assert updated.extracted_data["fields"][0]["value"] == "Potassium Chloride"
    assert updated.status == DocumentStatus.PROCESSED

    with pytest.raises(SchemaValidationError):
        processor.update(document.id, DocumentUpdate(extracted_data={"fields": "nope"}))


def test_update_ignores_null_extracted_data(processor, configured, coa_pdf):
    document = processor.process(_upload(processor, coa_pdf).id)

    updated = processor.update(document.id, DocumentUpdate(extracted_data=None, original_file_name="renamed.pdf"))

    assert updated.status == DocumentStatus.PROCESSED
    assert updated.extracted_data == document.extracted_data
    assert updated.original_file_name == "renamed.pdf"


def test_update_status_follows_state_machine(processor, configured, coa_pdf):
    document = _upload(processor, coa_pdf)

    with pytest.raises(InvalidStatusTransitionError):
        processor.update(document.id, DocumentUpdate(status=DocumentStatus.COMPLETED))

    renamed = processor.update(document.id, DocumentUpdate(original_file_name="renamed.pdf"))
    assert renamed.original_file_name == "renamed.pdf"
    assert renamed.status == DocumentStatus.UPLOADED


def test_complete(processor, configured, coa_pdf):
    document = _upload(processor, coa_pdf)
    with pytest.raises(InvalidStatusTransitionError):
        processor.complete(document.id)

    processor.process(document.id)
    assert processor.complete(document.id).status == DocumentStatus.COMPLETED


def test_edits_need_extracted_data(processor, coa_pdf):
    document = _upload(processor, coa_pdf)
    with pytest.raises(NoExtractedDataError):
        processor.add_table_row(document.id, "field_3")
    with pytest.raises(NoExtractedDataError):
        processor.generate(document.id, "pdf")


def test_table_edits_are_persisted(processor, configured, coa_pdf):
    document = processor.process(_upload(processor, coa_pdf).id)

    processor.add_table_row(document.id, "field_3")
    processor.remove_table_row(document.id, "field_3", 0)
    processor.update_table_cell(document.id, "field_3", 2, 0, "Water")
    stored = configured.get_document(document.id)

    table = next(field for field in stored.extracted_data["fields"] if field["id"] == "field_3")
    assert len(table["value"]) == 3
    assert table["value"][0] == ["Test", "Specification", "Result"]
    assert table["value"][2] == ["Water", "", ""]


def test_generate_names_download(processor, configured, coa_pdf):
    document = processor.process(_upload(processor, coa_pdf, name="Supplier COA.pdf").id)

    content, file_name, media_type = processor.generate(document.id, "docx")

    assert file_name == "Supplier COA_company.docx"
    assert media_type.endswith("wordprocessingml.document")
    assert content[:2] == b"PK"


def test_delete_removes_record_and_file(processor, file_manager, coa_pdf):
    document = _upload(processor, coa_pdf)

    processor.delete(document.id)

    assert not file_manager.file_exists(document.id)
    with pytest.raises(DocumentNotFoundError):
        processor.get(document.id)
    with pytest.raises(DocumentNotFoundError):
        processor.delete(document.id)


def test_delete_without_file_still_deletes_record(processor, file_manager, coa_pdf):
    document = _upload(processor, coa_pdf)
    file_manager.delete_file(document.id)

    processor.delete(document.id)

    with pytest.raises(DocumentNotFoundError):
        processor.get(document.id)
