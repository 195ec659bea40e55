from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Prefer repo-root `.env`; a local `.env` in the working directory overrides it.
    _REPO_ROOT = Path(__file__).resolve().parents[4]
    model_config = SettingsConfigDict(env_file=(_REPO_ROOT / ".env", ".env"), extra="ignore")

    VERSION: str = "0.1.0"
    APP_ENV: str = "dev"  # dev|test|prod
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    API_BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: str = "*"

    BLOB_STORE: str = "s3"  # "s3" or "local"
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str | None = None
    S3_ACCESS_KEY_ID: str = ""
    S3_SECRET_ACCESS_KEY: str = ""
    S3_BUCKET: str = ""
    # Base for unsigned object URLs, e.g. a CDN or a public bucket domain.
    S3_PUBLIC_BASE_URL: str | None = None
    LOCAL_BLOB_DIR: str = "var/blobs"
    LOCAL_BLOB_SIGNING_KEY: str = "change-me"
    BLOB_KEY_PREFIX: str = ""

    # S3 SigV4 presigned URLs are capped at 7 days.
    SIGNED_URL_TTL_SECONDS: int = 60 * 60 * 24 * 7
    STORAGE_TIMEOUT_SECONDS: float = 30.0
    MAX_UPLOAD_BYTES: int = 25 * 1024 * 1024

    IMAGE_TARGET_WIDTH: int = 300
    IMAGE_TARGET_HEIGHT: int = 300
    IMAGE_OUTPUT_FORMAT: str = "PNG"

    REQUEST_ID_HEADER: str = "x-request-id"
    ENABLE_PROMETHEUS_METRICS: bool = True
    PROMETHEUS_METRICS_PATH: str = "/metrics"
    ENABLE_OTEL_TRACING: bool = False
    OTEL_SERVICE_NAME: str = "file-upload-api"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: str = "http://localhost:4318/v1/traces"
    OTEL_EXPORTER_OTLP_HEADERS: str = ""
    OTEL_TRACE_SAMPLE_RATIO: float = 1.0
    OTEL_EXCLUDED_URLS: str = "/health,/readyz,/metrics"
    CONTENT_SECURITY_POLICY: str = "default-src 'none'; frame-ancestors 'none'"

    @field_validator("S3_ENDPOINT_URL", "S3_REGION", "S3_PUBLIC_BASE_URL", mode="before")
    @classmethod
    def _empty_to_none(cls, v: object) -> object:
        if v == "":
            return None
        return v

    @field_validator("BLOB_STORE")
    @classmethod
    def _validate_blob_store(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"s3", "local"}:
            raise ValueError(f"Unsupported BLOB_STORE: {v}")
        return v

    @field_validator(
        "SIGNED_URL_TTL_SECONDS",
        "STORAGE_TIMEOUT_SECONDS",
        "MAX_UPLOAD_BYTES",
        "IMAGE_TARGET_WIDTH",
        "IMAGE_TARGET_HEIGHT",
    )
    @classmethod
    def _validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @field_validator("BLOB_KEY_PREFIX")
    @classmethod
    def _normalize_key_prefix(cls, v: str) -> str:
        return v.lstrip("/")

    @field_validator("OTEL_TRACE_SAMPLE_RATIO")
    @classmethod
    def _validate_otel_sample_ratio(cls, v: float) -> float:
        if v < 0 or v > 1:
            raise ValueError("OTEL_TRACE_SAMPLE_RATIO must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def _require_s3_credentials(self) -> Settings:
        if self.BLOB_STORE != "s3":
            return self
        missing = [
            name
            for name in ("S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not getattr(self, name).strip()
        ]
        if missing:
            raise ValueError(f"BLOB_STORE=s3 requires {', '.join(missing)}")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
