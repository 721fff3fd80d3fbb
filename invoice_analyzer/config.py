"""Runtime settings for invoice analysis."""
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from invoice_analyzer.core.models import DEFAULT_MODEL


class Settings(BaseSettings):
    """Centralized runtime configuration, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API Configuration
    gemini_api_key: Optional[str] = Field(default=None, description="Default Gemini API key")
    gemini_model: str = Field(default=DEFAULT_MODEL, description="Model used when config and client name none")

    # Storage
    config_path: Path = Field(default=Path("config.json"), description="Global configuration document")
    clients_dir: Path = Field(default=Path("clients"), description="Directory of per-client override documents")
    logs_directory: Path = Field(default=Path("logs"), description="Directory for log files")

    # Processing Configuration
    concurrency: int = Field(default=3, ge=1, description="Concurrent analyses in batch mode")
    max_document_size_mb: float = Field(default=50.0, gt=0, description="Largest document sent to the model")

    # Retry Configuration (batch mode only)
    retry_attempts: int = Field(default=2, ge=0, description="Extra attempts per document after a failure")
    retry_base_delay: float = Field(default=1.0, ge=0, description="Base delay for exponential backoff")
    retry_max_delay: float = Field(default=10.0, ge=0, description="Maximum delay between retries")
    retry_jitter_range: float = Field(default=1.0, ge=0, description="Jitter range for retry delays")

    @field_validator("gemini_api_key", mode="before")
    @classmethod
    def blank_api_key_is_unset(cls, v):
        """Treat an empty GEMINI_API_KEY as not configured."""
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("gemini_model")
    @classmethod
    def model_must_not_be_empty(cls, v):
        """Ensure a model name is provided."""
        if not v or v.strip() == "":
            raise ValueError("GEMINI_MODEL must not be empty")
        return v.strip()
