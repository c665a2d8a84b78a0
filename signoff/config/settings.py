from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "signoff"
    db_username: str = "signoff"
    db_password: str = "secret"

    # Legacy export store; unset values fall back to the primary database.
    legacy_db_host: str | None = None
    legacy_db_port: int | None = None
    legacy_db_database: str | None = None
    legacy_db_username: str | None = None
    legacy_db_password: str | None = None
    legacy_mirror_enabled: bool = True

    files_root: Path = Path("/app/files")

    pdf_engine: str = "pdfplumber"

    recognition_provider: str = "http"
    recognition_service_url: str = "http://localhost:8001"
    recognition_timeout_seconds: float = 20.0
    recognition_dpi: int = 200
    tesseract_lang: str = "eng"

    generative_provider: str = "openai"
    generative_api_key: str = ""
    generative_model_name: str = "gpt-4o-mini"
    generative_base_url: str | None = None
    generative_timeout_seconds: int = 30
    generative_temperature: float = 0.1

    default_expected_digits: int = 7
    high_confidence_threshold: float = 0.90
    auto_apply_threshold: float = 0.80
    duplicate_confidence_threshold: float = 0.80
    recognition_accept_threshold: float = 0.80

    authoritative_lookup_enabled: bool = True
    # Fallback lookups read the legacy store even when mirroring is off.
    legacy_lookup_enabled: bool = True
