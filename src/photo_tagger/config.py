"""Application configuration."""

import base64
import binascii
import json
import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from photo_tagger.errors import ConfigurationMissing

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    google_service_account_key: str | None = None
    google_drive_folder_id: str | None = None
    turso_connection_url: str | None = None
    turso_auth_token: str | None = None
    drive_page_size: int = 100
    http_timeout_seconds: float = 15.0
    search_max_concurrency: int = 8
    search_fetch_timeout_seconds: float | None = None
    retry_attempts: int = 0
    retry_delay_seconds: float = 0.3
    thumbnail_path_prefix: str = "/photos/thumbnail"
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def tag_store_configured(self) -> bool:
        """Return true when both Turso settings are present."""
        return bool(self.turso_connection_url and self.turso_auth_token)


def normalize_turso_url(raw: str | None) -> str:
    """Return an HTTPS endpoint for a Turso connection URL."""
    if not raw:
        return ""
    cleaned = raw.strip()
    if cleaned.startswith("libsql://"):
        return "https://" + cleaned[len("libsql://") :]
    return cleaned


def decode_service_account_key(raw: str | None) -> dict[str, object]:
    """Decode a base64-encoded service account JSON key."""
    if not raw:
        raise ConfigurationMissing("Service account key not configured")
    try:
        decoded = base64.b64decode(raw, validate=False).decode("utf-8")
        payload = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationMissing("Service account key is not valid") from exc
    if not isinstance(payload, dict) or "client_email" not in payload:
        raise ConfigurationMissing("Service account key is not valid")
    return payload
