from sqlalchemy import Column, String, DateTime, Text, Enum
import uuid
import enum

from ..database import Base


class ConnectionStatus(str, enum.Enum):
    UNTESTED = "untested"
    TESTING = "testing"
    CONNECTED = "connected"
    FAILED = "failed"


class AppSettings(Base):
    """Singleton row holding the AI provider key"""
    __tablename__ = "settings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    api_key = Column(Text, nullable=True)
    # base64 obfuscation only, see utils/crypto.py
    encrypted_api_key = Column(Text, nullable=True)
    last_tested = Column(DateTime, nullable=True)
    connection_status = Column(
        Enum(ConnectionStatus, values_callable=lambda e: [member.value for member in e]),
        default=ConnectionStatus.UNTESTED,
        nullable=False
    )

    def __repr__(self):
        return f"<AppSettings(id={self.id}, connection_status={self.connection_status})>"
