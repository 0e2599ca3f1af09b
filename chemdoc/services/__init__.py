# Services module
from .file_manager import FileManager
from .pdf_processor import PDFProcessor
from .ai_extractor import AIExtractor
from .document_generator import DocumentGenerator
from .document_processor import DocumentProcessor
from .storage import DocumentStore, MemStorage, SqlStorage

__all__ = [
    "FileManager",
    "PDFProcessor",
    "AIExtractor",
    "DocumentGenerator",
    "DocumentProcessor",
    "DocumentStore",
    "MemStorage",
    "SqlStorage"
]
