"""
Centralized application settings using Pydantic.

All environment variables are read once (on first `get_settings()` call) and
validated. Use this instead of scattered os.getenv() calls throughout the codebase.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=True, env_file=".env", extra="ignore"
    )

    # App
    APP_NAME: str = Field(default="invoice-service")
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(default=True)

    # OCR provider (KlearStack)
    KLEARSTACK_BASE_URL: str = Field(
        default="https://staging.klearstackapp.com/access/klearstack"
    )
    KLEARSTACK_USERNAME: str = Field(default="")
    KLEARSTACK_PASSWORD: SecretStr = Field(default=SecretStr(""))
    KLEARSTACK_COMPANY_NAME: str = Field(default="")
    KLEARSTACK_DOCUMENT_TYPE: str = Field(default="Invoices")
    KLEARSTACK_PROCESSING_PREF: str = Field(default="Accuracy")
    KLEARSTACK_TIMEOUT_SECONDS: float = Field(default=60.0)

    # Extraction polling
    POLL_INTERVAL_MS: int = Field(default=5000)
    POLL_MAX_DURATION_MS: int = Field(default=300000)

    # GST status API
    GST_API_URL: str = Field(default="https://taxpayer.irisgst.com/api/search")
    GST_API_KEY: SecretStr | None = Field(default=None)
    GST_TIMEOUT_SECONDS: float = Field(default=15.0)

    # QR decoding API
    QR_API_URL: str = Field(default="")
    QR_API_TOKEN: SecretStr = Field(default=SecretStr(""))
    QR_TIMEOUT_SECONDS: float = Field(default=30.0)
    QR_SIGNED_URL_TTL_SECONDS: int = Field(default=3600)
    QR_MAX_RETRIES: int = Field(default=2)
    QR_BACKOFF_MS: tuple[int, ...] = Field(default=(500, 1000, 2000))

    # Object storage (S3/MinIO)
    S3_ENDPOINT: str = Field(default="")
    S3_ACCESS_KEY: str = Field(default="")
    S3_SECRET_KEY: SecretStr = Field(default=SecretStr(""))
    S3_SECURE: bool = Field(default=True)
    S3_REGION: str | None = Field(default=None)
    S3_INVOICES_BUCKET: str = Field(default="invoices")
    S3_SIGNED_URL_NAMESPACE: str = Field(default="invoices")

    # PostgreSQL
    DB_HOST: str = Field(default="localhost")
    DB_PORT: int = Field(default=5432)
    DB_NAME: str = Field(default="invoices")
    DB_USER: str = Field(default="postgres")
    DB_PASSWORD: SecretStr = Field(default=SecretStr(""))
    DB_POOL_MIN_SIZE: int = Field(default=1)
    DB_POOL_MAX_SIZE: int = Field(default=10)
    DB_POOL_TIMEOUT: float = Field(default=10.0)
    DB_COMMAND_TIMEOUT: float = Field(default=10.0)

    # Event notification (Kafka REST proxy)
    EVENTS_REST_URL: str | None = Field(default=None)
    EVENTS_TOPIC: str = Field(default="invoices.ingest")
    EVENTS_TIMEOUT_SECONDS: float = Field(default=10.0)

    @property
    def storage_configured(self) -> bool:
        return bool(self.S3_ENDPOINT and self.S3_ACCESS_KEY)

    @property
    def gst_api_key(self) -> str | None:
        if self.GST_API_KEY is None:
            return None
        return self.GST_API_KEY.get_secret_value() or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
