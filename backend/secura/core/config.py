"""Application configuration via pydantic settings."""

from functools import lru_cache
from pathlib import Path

from typing import Any

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = "Secura QR API"
    api_v1_prefix: str = "/api/v1"
    public_base_url: str = Field("http://localhost:5173", alias="PUBLIC_BASE_URL")

    database_url: str = Field(..., alias="DATABASE_URL")
    sync_database_url: str | None = Field(default=None, alias="SYNC_DATABASE_URL")

    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int | None = Field(default=None, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_from: str | None = Field(default=None, alias="SMTP_FROM")

    max_guests_per_event: int = Field(10000, alias="MAX_GUESTS_PER_EVENT")
    max_seats_per_guest: int = Field(100, alias="MAX_SEATS_PER_GUEST")
    guest_bulk_import_limit: int = Field(1000, alias="GUEST_BULK_IMPORT_LIMIT")
    guest_bulk_delete_limit: int = Field(500, alias="GUEST_BULK_DELETE_LIMIT")
    allow_duplicate_guest_emails: bool = Field(
        default=False, alias="ALLOW_DUPLICATE_GUEST_EMAILS"
    )
    max_events_per_organizer: int = Field(100, alias="MAX_EVENTS_PER_ORGANIZER")
    invitation_expire_days: int = Field(30, alias="INVITATION_EXPIRE_DAYS")
    scan_history_limit: int = Field(10, alias="SCAN_HISTORY_LIMIT")

    qr_secret: str = Field("secura-dev-qr-secret", alias="QR_SECRET")
    qr_expire_days: int = Field(30, alias="QR_EXPIRE_DAYS")
    qr_max_scans: int = Field(1, alias="QR_MAX_SCANS")
    max_qr_codes_per_event: int = Field(10000, alias="MAX_QR_CODES_PER_EVENT")
    max_table_qr_codes: int = Field(200, alias="MAX_TABLE_QR_CODES")
    qr_bulk_generate_limit: int = Field(500, alias="QR_BULK_GENERATE_LIMIT")

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:8080",
        ],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")
    cors_allowlist: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"], alias="CORS_ALLOWLIST"
    )

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        case_sensitive=False,
    )

    @field_validator("cors_allow_origins", "cors_allowlist", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
