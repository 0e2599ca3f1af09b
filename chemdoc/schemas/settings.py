from pydantic import ConfigDict
from datetime import datetime
from typing import Optional

from ..models.settings import ConnectionStatus
from .extracted_data import CamelModel


class SettingsRecord(CamelModel):
    """The settings singleton including key material; never returned by the API"""
    id: str
    api_key: Optional[str] = None
    encrypted_api_key: Optional[str] = None
    last_tested: Optional[datetime] = None
    connection_status: ConnectionStatus = ConnectionStatus.UNTESTED

    model_config = ConfigDict(from_attributes=True)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key or self.encrypted_api_key)


class SettingsUpdate(CamelModel):
    api_key: Optional[str] = None
    encrypted_api_key: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class SettingsResponse(CamelModel):
    id: Optional[str] = None
    last_tested: Optional[datetime] = None
    connection_status: ConnectionStatus = ConnectionStatus.UNTESTED
    has_api_key: bool = False

    @classmethod
    def from_record(cls, record: Optional[SettingsRecord]) -> "SettingsResponse":
        if record is None:
            return cls()
        return cls(
            id=record.id,
            last_tested=record.last_tested,
            connection_status=record.connection_status,
            has_api_key=record.has_api_key,
        )


class ConnectionTestResponse(CamelModel):
    connected: bool
    connection_status: ConnectionStatus
