from .document import Document, DocumentStatus
from .settings import AppSettings, ConnectionStatus

__all__ = [
    "Document",
    "DocumentStatus",
    "AppSettings",
    "ConnectionStatus"
]
