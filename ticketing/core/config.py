"""Application configuration."""

import logging
from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # API Settings
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Mumbai Local Ticketing API"
    DEBUG: bool = False
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    @field_validator("ALLOWED_ORIGINS", mode="after")
    @classmethod
    def parse_cors(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated CORS origins or pass through list."""
        return v if isinstance(v, list) else [origin.strip() for origin in v.split(",")]

    # Database Settings
    DATABASE_URL: str = Field(validation_alias="SECRET_DATABASE_URL")
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10

    # Payment gateway (Razorpay)
    RAZORPAY_KEY_ID: str
    RAZORPAY_KEY_SECRET: str = Field(validation_alias="SECRET_RAZORPAY_KEY_SECRET")
    RAZORPAY_API_URL: str = "https://api.razorpay.com"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    PAYMENT_CURRENCY: str = "INR"
    # Hosted checkout page; the gateway order id is appended as a path segment
    CHECKOUT_BASE_URL: str = "http://localhost:3000/pay"

    # Reconciliation of orders left open by lost callbacks or failed settlement
    RECONCILE_AFTER_MINUTES: int = 15

    # Station catalog (built-in Mumbai Local table when unset)
    STATION_CATALOG_PATH: str | None = None

    # Geofence
    GEOFENCE_THRESHOLD_METERS: float = 500.0

    # Challans
    DEFAULT_CHALLAN_REASON: str = "Invalid ticket"
    DEFAULT_FINE_AMOUNT: Decimal = Decimal("500.00")

    # OCR collaborator
    OCR_SERVICE_URL: str | None = None
    OCR_TIMEOUT_SECONDS: float = 30.0

    # Messaging
    WHATSAPP_BASE_URL: str = "https://wa.me"
    SMS_LOG_DIR: str | None = None  # Directory for the outbox stub log (optional)

    # Celery Settings
    CELERY_BROKER_URL: str | None = Field(default=None, validation_alias="SECRET_CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND: str | None = Field(default=None, validation_alias="SECRET_CELERY_RESULT_BACKEND")

    # PII Hashing Settings
    PII_HASH_SECRET: str = Field(validation_alias="SECRET_PII_HASH")

    @field_validator("PII_HASH_SECRET", mode="after")
    @classmethod
    def validate_pii_hash_secret(cls, v: str) -> str:
        """Ensure SECRET_PII_HASH meets minimum security requirements."""
        min_length = 32
        if len(v) < min_length:
            msg = f"SECRET_PII_HASH must be at least {min_length} characters long for security"
            raise ValueError(msg)
        if v == "REPLACE_ME_WITH_RANDOM_SECRET":
            msg = (
                "SECRET_PII_HASH is set to placeholder value. "
                'Generate a secure secret using: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
            raise ValueError(msg)
        return v

    # OpenTelemetry Settings
    OTEL_ENABLED: bool = True
    OTEL_SERVICE_NAME: str = "mumbai-local-ticketing"
    OTEL_ENVIRONMENT: str = "production"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: str | None = None
    OTEL_EXPORTER_OTLP_HEADERS: str | None = Field(default=None, validation_alias="SECRET_OTEL_HEADERS")
    OTEL_EXCLUDED_URLS: str = "/health,/status"

    @field_validator("OTEL_EXCLUDED_URLS", mode="after")
    @classmethod
    def parse_otel_excluded_urls(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated excluded URLs or pass through list, filtering out empty strings."""
        if isinstance(v, list):
            return [url for url in v if url]
        return [url.strip() for url in v.split(",") if url.strip()]

    # Logging Settings
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        normalized = v.upper()
        valid_levels = logging.getLevelNamesMapping()
        if normalized not in valid_levels:
            msg = f"Invalid LOG_LEVEL '{v}'. Must be one of: {', '.join(sorted(valid_levels.keys()))}"
            raise ValueError(msg)
        return normalized


settings = Settings()


def require_config(*field_names: str) -> None:
    """
    Validate that required configuration fields are set.

    Modules backed by optional collaborators (OCR, Celery, OTLP export) call
    this before first use.

    Args:
        *field_names: Names of required configuration fields

    Raises:
        ValueError: If any required field is missing or None

    Example:
        from ticketing.core.config import require_config, settings
        require_config("OCR_SERVICE_URL")
    """
    missing = []
    for field in field_names:
        value = getattr(settings, field, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)

    if missing:
        msg = f"Required configuration missing: {', '.join(missing)}"
        raise ValueError(msg)
