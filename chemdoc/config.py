# chemdoc/config.py
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PORT: int = 8000
    HOST: str = "0.0.0.0"

    # Application
    APP_NAME: str = "ChemDoc Processor API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Storage
    STORAGE_BACKEND: str = "memory"  # "memory" or "database"
    DATABASE_URL: str = "sqlite:///./chemdoc.db"

    # File Upload
    UPLOAD_DIR: str = "uploads"
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_FILE_TYPES: list[str] = [".pdf"]

    # AI provider (OpenAI-compatible chat completions)
    AI_BASE_URL: str = "https://api.mistral.ai/v1"
    AI_MODEL: str = "mistral-large-latest"
    AI_TEMPERATURE: float = 0.1
    AI_MAX_TOKENS: int = 4000
    AI_MAX_INPUT_CHARS: int = 30000
    AI_TIMEOUT: float = 120.0

    # Rate limit retry
    AI_MAX_ATTEMPTS: int = 4
    AI_BACKOFF_BASE: float = 1.0  # seconds
    AI_BACKOFF_CAP: float = 8.0  # seconds

    # Text extraction
    TEXT_EXTRACTION_MODE: str = "local"  # "local" or "ocr"
    OCR_MODEL: str = "mistral-ocr-latest"
    MIN_TEXT_LENGTH: int = 10
    PDF_PAGE_LIMIT: int = 50

    # Plaintext keys posted to /settings are persisted base64-obscured (not encrypted)
    OBSCURE_STORED_API_KEY: bool = True

    # What to do when the AI call cannot succeed at all
    EXTRACTION_FALLBACK: str = "strict"  # "strict" or "heuristic"

    # Branding for generated documents
    COMPANY_NAME: str = "Nano Tech Chemical Brothers Pvt. Ltd."
    COMPANY_DOCUMENT_TITLE: str = "Certificate of Analysis"
    GENERATOR_NAME: str = "ChemDoc Processor"

    @field_validator("PORT", mode="before")
    @classmethod
    def parse_port(cls, v):
        return int(v)

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, bool):
            return v
        return str(v).lower() in ("true", "1", "yes")

    @field_validator("STORAGE_BACKEND", mode="before")
    @classmethod
    def validate_storage_backend(cls, v):
        valid_backends = ["memory", "database"]
        if v not in valid_backends:
            raise ValueError(f"STORAGE_BACKEND must be one of {valid_backends}")
        return v

    @field_validator("TEXT_EXTRACTION_MODE", mode="before")
    @classmethod
    def validate_text_extraction_mode(cls, v):
        valid_modes = ["local", "ocr"]
        if v not in valid_modes:
            raise ValueError(f"TEXT_EXTRACTION_MODE must be one of {valid_modes}")
        return v

    @field_validator("EXTRACTION_FALLBACK", mode="before")
    @classmethod
    def validate_extraction_fallback(cls, v):
        valid_policies = ["strict", "heuristic"]
        if v not in valid_policies:
            raise ValueError(f"EXTRACTION_FALLBACK must be one of {valid_policies}")
        return v

    @field_validator("AI_MAX_ATTEMPTS")
    @classmethod
    def validate_max_attempts(cls, v):
        if v < 1:
            raise ValueError("AI_MAX_ATTEMPTS must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow",
    )


# Create settings instance
settings = Settings()
