import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    DEBUG_ROUTES_ENABLED: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Sessions
    SESSION_SECRET: str = "dev-session-secret-change-me"
    SESSION_TTL_MINUTES: int = 60 * 24 * 30
    SESSION_COOKIE_NAME: str = "session"

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_PRICE_ID_MONTHLY: Optional[str] = None

    # Email (Resend REST API)
    RESEND_API_KEY: Optional[str] = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "Viral Academy <noreply@viralacademy.com>"

    # Blob storage (any S3-compatible endpoint)
    BLOB_BUCKET: Optional[str] = None
    BLOB_ENDPOINT_URL: Optional[str] = None
    BLOB_ACCESS_KEY: Optional[str] = None
    BLOB_SECRET_KEY: Optional[str] = None
    BLOB_REGION: str = "auto"
    BLOB_PUBLIC_BASE_URL: Optional[str] = None

    # App URLs
    APP_URL: str = "http://localhost:3000"
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def cors_origins(settings_obj: Optional[Settings] = None) -> list[str]:
    cfg = settings_obj or settings
    return [origin.strip() for origin in cfg.CORS_ORIGINS.split(",") if origin.strip()]


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("academy")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
        "STRIPE_PRICE_ID_MONTHLY",
        "RESEND_API_KEY",
        "BLOB_BUCKET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
