import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma/space separated hosts.
    if raw.startswith(("[", '"')):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
        else:
            origins.append(f"http://{part}")
            origins.append(f"https://{part}")

    return list(dict.fromkeys(origins))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Server bind address
    host: str = "0.0.0.0"
    port: int = 3000

    # Shared upload secret; the app refuses to start without it
    upload_password: str = ""

    # Record storage
    storage_dir: str = "./storage"

    # Credential lockout policy
    password_max_failures: int = 5
    lock_duration_seconds: int = 3600

    # Rate limiting (windows in milliseconds)
    upload_rate_limit_max_requests: int = 10
    upload_rate_limit_window_ms: int = 60000
    read_rate_limit_max_requests: int = 60
    read_rate_limit_window_ms: int = 60000
    rate_limit_fail_closed: bool = False  # Deny requests when Redis is unavailable

    # Only honour X-Forwarded-For behind a trusted proxy
    trust_forwarded_for: bool = False

    # Upload limits
    max_upload_bytes: int = 50 * 1024 * 1024
    max_image_pixels: int = 25_000_000

    # Redis settings (optional rate limit backend)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "password_max_failures",
        "lock_duration_seconds",
        "upload_rate_limit_max_requests",
        "read_rate_limit_max_requests",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate policy thresholds are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("upload_rate_limit_window_ms", "read_rate_limit_window_ms")
    @classmethod
    def validate_window(cls, v: int) -> int:
        """Validate rate limit windows are at least one second."""
        if v < 1000:
            raise ValueError("rate limit window must be at least 1000 ms")
        return v

    @field_validator("max_upload_bytes", "max_image_pixels")
    @classmethod
    def validate_upload_limits(cls, v: int) -> int:
        if v < 1:
            raise ValueError("upload limits must be positive")
        return v

    @field_validator("upload_password")
    @classmethod
    def strip_upload_password(cls, v: str) -> str:
        # Normalize accidental whitespace/newline from env/secret stores.
        return v.strip()

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
