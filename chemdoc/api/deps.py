"""
API Dependencies
"""
from functools import lru_cache
from typing import Generator

from fastapi import Depends

from ..config import settings
from ..database import SessionLocal
from ..services.ai_extractor import AIExtractor
from ..services.document_generator import DocumentGenerator
from ..services.document_processor import DocumentProcessor
from ..services.file_manager import FileManager
from ..services.storage import DocumentStore, MemStorage, SqlStorage


def get_db() -> Generator:
    """
    Database dependency
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_storage() -> DocumentStore:
    """One store per process, chosen by STORAGE_BACKEND"""
    if settings.STORAGE_BACKEND == "database":
        return SqlStorage(SessionLocal)
    return MemStorage()


@lru_cache
def get_file_manager() -> FileManager:
    return FileManager(settings.UPLOAD_DIR)


@lru_cache
def get_extractor() -> AIExtractor:
    return AIExtractor()


@lru_cache
def get_generator() -> DocumentGenerator:
    return DocumentGenerator()


def get_processor(
    store: DocumentStore = Depends(get_storage),
    file_manager: FileManager = Depends(get_file_manager),
    extractor: AIExtractor = Depends(get_extractor),
    generator: DocumentGenerator = Depends(get_generator),
) -> DocumentProcessor:
    return DocumentProcessor(store, file_manager, extractor, generator)
