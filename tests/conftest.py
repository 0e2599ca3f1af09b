import json
from types import SimpleNamespace
from typing import Iterable, List, Optional

import fitz
import httpx
import openai
import pytest
from fastapi.testclient import TestClient

from chemdoc.api.deps import get_extractor, get_file_manager, get_generator, get_storage
from chemdoc.main import app
from chemdoc.services.ai_extractor import AIExtractor
from chemdoc.services.document_generator import DocumentGenerator
from chemdoc.services.document_processor import DocumentProcessor
from chemdoc.services.file_manager import FileManager
from chemdoc.services.storage import MemStorage

AI_URL = "https://api.mistral.ai/v1/chat/completions"

COA_TEXT = "\n".join(
    [
        "Certificate of Analysis",
        "Product Name: Sodium Chloride",
        "CAS Number: 7647-14-5",
        "Batch Number: NC-2024-001",
        "Test Results",
        "Purity 99.8 percent, meets the specification for analytical reagent grade material.",
    ]
)


def make_pdf(pages: Iterable[str]) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def rate_limit_error() -> openai.RateLimitError:
    request = httpx.Request("POST", AI_URL)
    response = httpx.Response(429, request=request, json={"message": "Requests rate limit exceeded"})
    return openai.RateLimitError("Requests rate limit exceeded", response=response, body=None)


def status_error(status_code: int, message: str = "Server error") -> openai.APIStatusError:
    request = httpx.Request("POST", AI_URL)
    response = httpx.Response(status_code, request=request, json={"message": message})
    if status_code == 401:
        return openai.AuthenticationError(message, response=response, body=None)
    return openai.InternalServerError(message, response=response, body=None)


def raw_extraction() -> dict:
    """A typical AI answer: some ids missing, sections given as plain strings"""
    return {
        "documentType": "Certificate of Analysis",
        "detectedSections": ["Product Information", "Test Results"],
        "fields": [
            {
                "label": "Product Name",
                "value": "Sodium Chloride",
                "type": "text",
                "section": "Product Information",
                "layout": {"structureType": "field", "order": 1},
            },
            {
                "id": "cas_number",
                "label": "CAS Number",
                "value": "7647-14-5",
                "type": "text",
                "section": "Product Information",
                "layout": {"structureType": "field", "order": 2},
            },
            {
                "label": "Results",
                "value": [["Test", "Specification", "Result"], ["Purity", ">= 99.5%", "99.8%"]],
                "type": "table",
                "section": "Test Results",
                "layout": {"structureType": "table", "columns": 3, "rows": 2, "order": 1},
            },
        ],
        "metadata": {"confidence": 0.9},
    }


# ============ Fake AI provider ============

class _FakeCompletions:
    def __init__(self, responses: List):
        self._responses = list(responses)
        self.calls = 0

    def create(self, **kwargs):
        self.calls += 1
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=item))])


class FakeAIClient:
    """Stands in for openai.OpenAI; answers are consumed in order"""

    def __init__(self, responses: Iterable = (), models_error: Optional[Exception] = None):
        self.completions = _FakeCompletions(list(responses))
        self.chat = SimpleNamespace(completions=self.completions)
        self.models = SimpleNamespace(list=self._list_models)
        self._models_error = models_error

    def _list_models(self):
        if self._models_error is not None:
            raise self._models_error
        return SimpleNamespace(data=[SimpleNamespace(id="mistral-large-latest")])


class FakeClientFactory:
    def __init__(self, client: FakeAIClient):
        self.client = client
        self.api_keys: List[str] = []

    def __call__(self, api_key: str) -> FakeAIClient:
        self.api_keys.append(api_key)
        return self.client


class FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = ""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self.text = text or json.dumps(payload or {})

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeHttpSession:
    def __init__(self, responses: Iterable):
        self._responses = list(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self._responses.pop(0)


def fenced(payload: dict) -> str:
    return f"Here is the extracted data:\n```json\n{json.dumps(payload)}\n```"


# ============ Fixtures ============

@pytest.fixture
def store():
    return MemStorage()


@pytest.fixture
def file_manager(tmp_path):
    return FileManager(str(tmp_path / "uploads"))


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def ai_client():
    return FakeAIClient([fenced(raw_extraction())])


@pytest.fixture
def client_factory(ai_client):
    return FakeClientFactory(ai_client)


@pytest.fixture
def extractor(client_factory, sleeps):
    return AIExtractor(client_factory=client_factory, text_mode="local", sleep=sleeps.append)


@pytest.fixture
def processor(store, file_manager, extractor):
    return DocumentProcessor(store, file_manager, extractor, DocumentGenerator(), fallback_policy="strict")


@pytest.fixture
def coa_pdf():
    return make_pdf([COA_TEXT])


@pytest.fixture
def api_client(store, file_manager, extractor):
    app.dependency_overrides[get_storage] = lambda: store
    app.dependency_overrides[get_file_manager] = lambda: file_manager
    app.dependency_overrides[get_extractor] = lambda: extractor
    app.dependency_overrides[get_generator] = DocumentGenerator

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
