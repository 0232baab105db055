"""
Unified configuration for pixdrop services.

This module provides a single Settings class that consolidates all
environment variables used by the API, the processing pipeline and
the maintenance scripts.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Determine project root for .env file loading (allows running from any CWD)
PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """
    Unified settings for all pixdrop services.

    Environment variables are loaded from .env file and can be overridden
    by actual environment variables.
    """

    # Service identification
    SERVICE_NAME: str = "pixdrop"
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    POSTGRES_DSN: str = "host=localhost port=5432 dbname=postgres user=postgres password=postgres"

    # Storage areas
    UPLOAD_DIR: str = "uploads"
    ARTIFACT_DIR: str = "processed"
    ARTIFACT_BACKEND: str = "local"  # "local" or "minio"

    # MinIO Configuration (ARTIFACT_BACKEND=minio)
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_BUCKET_ARTIFACTS: str = "processed"
    MINIO_SECURE: bool = False

    # Upload limits
    MAX_UPLOAD_BYTES: int = 15 * 1024 * 1024
    MAX_BATCH_SIZE: int = 40
    FREE_BATCH_SIZE: int = 1
    ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
        {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
    )

    # Processing
    ARTIFACT_TTL_HOURS: int = 24
    TRANSFORM_TIMEOUT_SECONDS: float = 60.0
    DEFAULT_COMPRESS_QUALITY: int = 80

    # Job history
    JOB_LIST_DEFAULT_LIMIT: int = 50
    JOB_LIST_MAX_LIMIT: int = 100

    # Maintenance
    SWEEP_GRACE_MINUTES: int = 0
    UPLOAD_STALE_MINUTES: int = 60

    # Auth (bearer tokens are issued by the account service)
    JWT_SECRET: str = ""
    SESSION_COOKIE_NAME: str = "pixdrop_session"

    # Rate limiting
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    UPLOAD_RATE_LIMIT: str = "120/minute"
    USAGE_RATE_LIMIT: str = "300/minute"
    DOWNLOAD_RATE_LIMIT: str = "600/minute"

    # Telemetry
    ENABLE_TELEMETRY: bool = False
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ""
    OTEL_SERVICE_NAME: str = ""

    # App host/port
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8081

    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        extra="ignore"
    )


# Global settings instance
settings = Settings()  # type: ignore
