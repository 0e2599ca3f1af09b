# chemdoc/services/ai_extractor.py
"""
Extraction client: raw text out of a PDF, then a structured JSON guess of
its content out of an OpenAI-compatible chat-completion endpoint.
"""
import base64
import json
import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

import openai
import requests
from openai import OpenAI

from ..config import settings
from ..schemas.settings import SettingsRecord
from ..utils.crypto import reveal_api_key
from .errors import (
    AiApiError,
    InsufficientTextError,
    NoApiKeyError,
    NoJsonFoundError,
    RateLimitedError,
    RateLimitExhaustedError,
)
from .pdf_processor import PDFProcessor

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _default_client_factory(api_key: str) -> OpenAI:
    # Retries are ours (see _with_rate_limit_retry), not the SDK's
    return OpenAI(
        api_key=api_key,
        base_url=settings.AI_BASE_URL,
        max_retries=0,
        timeout=settings.AI_TIMEOUT,
    )


def _closing_brace(content: str, start: int) -> Optional[int]:
    """Index of the brace closing the object opened at start, or None when it never closes"""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(content)):
        char = content[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def find_json_object(content: str) -> Optional[Dict[str, Any]]:
    """
    Return the first balanced {...} in content that parses as a JSON object.

    AI answers often wrap the JSON in prose or markdown fences; braces inside
    string literals are skipped while matching. Only top-level objects are
    considered: an object that fails to parse is skipped as a whole, and an
    object that never closes (an answer cut off at the token limit) ends the
    search.
    """
    start = content.find("{")
    while start != -1:
        end = _closing_brace(content, start)
        if end is None:
            logger.warning("AI response ends inside an unclosed JSON object")
            return None
        try:
            parsed = json.loads(content[start:end + 1])
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        start = content.find("{", end + 1)
    return None


class AIExtractor:
    def __init__(
        self,
        client_factory: Optional[Callable[[str], Any]] = None,
        http_session: Optional[requests.Session] = None,
        pdf_processor: Optional[PDFProcessor] = None,
        text_mode: Optional[str] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_cap: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client_factory = client_factory or _default_client_factory
        self.http_session = http_session or requests.Session()
        self.pdf_processor = pdf_processor or PDFProcessor(page_limit=settings.PDF_PAGE_LIMIT)
        self.text_mode = text_mode or settings.TEXT_EXTRACTION_MODE
        self.max_attempts = max_attempts or settings.AI_MAX_ATTEMPTS
        self.backoff_base = settings.AI_BACKOFF_BASE if backoff_base is None else backoff_base
        self.backoff_cap = settings.AI_BACKOFF_CAP if backoff_cap is None else backoff_cap
        self.sleep = sleep

        self.system_prompt = """You are an intelligent document analysis system for chemical supplier documents
(Certificates of Analysis, Safety Data Sheets, Product Specifications and similar).

Analyze the document and:
1. Identify the document type
2. Detect all sections in their original reading order
3. Extract every meaningful data point: company information, product details,
   specifications, test results, dates, reference numbers
4. Keep tables as tables: row 0 is the header row, every following row is one data row
5. Keep headings and free-text paragraphs where they appear in the document

Return a JSON object with this exact structure:
{
  "documentType": "detected document type",
  "detectedSections": [
    {"id": "section_1", "title": "Section title", "type": "table|heading|field_group|list|other",
     "content": "short description", "preview": "first words of the section", "order": 1}
  ],
  "fields": [
    {
      "id": "unique_field_id",
      "label": "Human readable field name",
      "value": "extracted value, null, or for tables an array of rows of strings",
      "type": "text|number|date|email|phone|textarea|select|boolean|table|heading|paragraph",
      "section": "title of the section this field belongs to",
      "required": false,
      "options": ["option1", "option2"],
      "layout": {"structureType": "field|table|heading|paragraph|list", "level": 2,
                 "columns": 3, "rows": 4, "order": 1}
    }
  ],
  "structure": {"hasHeaders": true, "hasTables": true, "hasLists": false},
  "metadata": {"confidence": 0.85, "totalFields": 12}
}

Field type rules:
- "number" for quantities, percentages, measurements
- "date" for dates (ISO format YYYY-MM-DD when possible)
- "email" / "phone" for contact data
- "textarea" for long descriptions
- "select" only when the possible options are known, listed in "options"
- "boolean" for yes/no values
- "table" for tabular data, value is a 2-D array of strings
- "heading" for headings, with layout.level 1 (largest) to 6
- "paragraph" for running text
- "text" otherwise

layout.order is the position of the field inside its section, starting at 1.
Return only the JSON object, no additional text."""

    # ============ API key & connectivity ============

    def resolve_api_key(self, app_settings: Optional[SettingsRecord]) -> str:
        """Plaintext key first, then the base64-encoded one"""
        if app_settings is None:
            raise NoApiKeyError()
        if app_settings.api_key:
            return app_settings.api_key
        if app_settings.encrypted_api_key:
            return reveal_api_key(app_settings.encrypted_api_key)
        raise NoApiKeyError()

    def test_connection(self, app_settings: Optional[SettingsRecord]) -> bool:
        """Authenticated lightweight request; False on any failure, never raises"""
        try:
            api_key = self.resolve_api_key(app_settings)
            client = self.client_factory(api_key)
            client.models.list()
            logger.info("✅ AI provider connection test succeeded")
            return True
        except NoApiKeyError:
            logger.warning("Connection test skipped: no API key configured")
            return False
        except openai.OpenAIError as e:
            logger.warning(f"❌ AI provider connection test failed: {e}")
            return False

    # ============ Text extraction ============

    def extract_text(self, file_path: str, app_settings: Optional[SettingsRecord]) -> str:
        """Raw document text, from the PDF text layer or the OCR endpoint"""
        if self.text_mode == "ocr":
            api_key = self.resolve_api_key(app_settings)
            text = self._with_rate_limit_retry(lambda: self._call_ocr(file_path, api_key), "OCR")
        else:
            text = self.pdf_processor.extract_text(file_path)

        length = len(text.strip())
        if length < settings.MIN_TEXT_LENGTH:
            raise InsufficientTextError(length, settings.MIN_TEXT_LENGTH)

        logger.info(f"✅ Extracted {length} characters of text ({self.text_mode})")
        return text

    def _call_ocr(self, file_path: str, api_key: str) -> str:
        with open(file_path, "rb") as f:
            encoded = base64.b64encode(f.read()).decode("ascii")

        try:
            response = self.http_session.post(
                f"{settings.AI_BASE_URL.rstrip('/')}/ocr",
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": settings.OCR_MODEL,
                    "document": {
                        "type": "document_url",
                        "document_url": f"data:application/pdf;base64,{encoded}",
                    },
                    "include_image_base64": False,
                },
                timeout=settings.AI_TIMEOUT,
            )
        except requests.RequestException as e:
            raise AiApiError(f"OCR request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError("OCR rate limit exceeded")
        if not response.ok:
            raise AiApiError(
                f"OCR API error: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AiApiError(f"OCR API returned invalid JSON: {e}", status_code=response.status_code) from e

        pages = payload.get("pages") or []
        pages = sorted(pages, key=lambda page: page.get("index", 0))
        return "\n\n".join(page.get("markdown") or page.get("text") or "" for page in pages)

    # ============ Structured extraction ============

    def extract_structured_data(self, text: str, app_settings: Optional[SettingsRecord]) -> Dict[str, Any]:
        """
        Ask the AI for a structured reading of the document text.

        Returns the raw, unvalidated JSON object; normalizer.normalize_extraction
        turns it into ExtractedData.
        """
        api_key = self.resolve_api_key(app_settings)

        max_chars = settings.AI_MAX_INPUT_CHARS
        if len(text) > max_chars:
            text = text[:max_chars] + "..."
            logger.info(f"📄 Text truncated to {max_chars} characters for API call")

        content = self._with_rate_limit_retry(lambda: self._call_chat(api_key, text), "chat completion")
        if not content:
            raise NoJsonFoundError("AI response contained no content")

        data = find_json_object(content)
        if data is None:
            logger.error(f"No JSON object in AI response, preview: {content[:300]}...")
            raise NoJsonFoundError("No valid JSON found in AI response")

        fields = data.get("fields")
        field_count = len(fields) if isinstance(fields, list) else 0
        logger.info(f"✅ AI extraction returned {field_count} fields")
        return data

    def _call_chat(self, api_key: str, text: str) -> Optional[str]:
        client = self.client_factory(api_key)
        messages = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": f"Extract the structured content of this document:\n\n{text}"}
        ]

        try:
            response = client.chat.completions.create(
                model=settings.AI_MODEL,
                messages=messages,
                temperature=settings.AI_TEMPERATURE,
                max_tokens=settings.AI_MAX_TOKENS
            )
        except openai.RateLimitError as e:
            raise RateLimitedError(str(e)) from e
        except openai.APIStatusError as e:
            raise AiApiError(f"AI API error: {e.status_code} {e.message}", status_code=e.status_code) from e
        except openai.APIConnectionError as e:
            raise AiApiError(f"Could not reach AI provider: {e}") from e

        if not response.choices:
            return None
        return response.choices[0].message.content

    def _with_rate_limit_retry(self, operation: Callable[[], T], description: str) -> T:
        """
        Run operation, retrying only on HTTP 429 with exponential backoff.

        The delay before retry n (0-based) is min(base * 2**n, cap). Any other
        error leaves the loop at once.
        """
        for attempt in range(self.max_attempts):
            try:
                return operation()
            except RateLimitedError:
                if attempt == self.max_attempts - 1:
                    break
                delay = min(self.backoff_base * (2 ** attempt), self.backoff_cap)
                logger.warning(
                    f"⏳ {description} rate limited (attempt {attempt + 1}/{self.max_attempts}), "
                    f"retrying in {delay:.1f}s"
                )
                self.sleep(delay)

        logger.error(f"❌ {description} still rate limited after {self.max_attempts} attempts")
        raise RateLimitExhaustedError(self.max_attempts)
