# chemdoc/api/v1/settings.py
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
import logging

from ...config import settings
from ...models.settings import ConnectionStatus
from ...schemas.settings import ConnectionTestResponse, SettingsResponse, SettingsUpdate
from ...services.ai_extractor import AIExtractor
from ...services.storage import DocumentStore
from ...utils.crypto import obscure_api_key
from ..deps import get_extractor, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=SettingsResponse)
async def get_settings(store: DocumentStore = Depends(get_storage)):
    """Non-secret settings; key material is only reported as hasApiKey"""
    return SettingsResponse.from_record(store.get_settings())


@router.post("", response_model=SettingsResponse)
async def save_settings(update: SettingsUpdate, store: DocumentStore = Depends(get_storage)):
    """Replace the stored key; the connection has to be tested again afterwards"""
    api_key = update.api_key
    encrypted_api_key = update.encrypted_api_key

    if api_key and settings.OBSCURE_STORED_API_KEY:
        encrypted_api_key = obscure_api_key(api_key)
        api_key = None

    record = store.replace_settings(api_key=api_key, encrypted_api_key=encrypted_api_key)
    logger.info(f"🔑 Settings saved (API key configured: {record.has_api_key})")
    return SettingsResponse.from_record(record)


@router.post("/test", response_model=ConnectionTestResponse)
async def test_connection(
    store: DocumentStore = Depends(get_storage),
    extractor: AIExtractor = Depends(get_extractor)
):
    """Live request against the AI provider with the stored key"""
    current = store.get_settings()
    connected = await run_in_threadpool(extractor.test_connection, current)

    record = store.record_connection_test(connected) if current else None
    if record is None:
        return ConnectionTestResponse(connected=False, connection_status=ConnectionStatus.FAILED)
    return ConnectionTestResponse(connected=connected, connection_status=record.connection_status)
