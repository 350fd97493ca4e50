"""
Configuration helpers for the account gateway.

Every adapter receives a Settings instance at construction; nothing in the
operations reads the environment or hardcodes endpoints/credentials.
"""

from dataclasses import dataclass
from functools import lru_cache
import os

BACKEND_HTTP = "http"
BACKEND_TABLE = "table"


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    account_backend: str
    base_url: str
    service_key: str
    webhook_url: str
    verify_webhook_url: str
    request_timeout_seconds: float
    database_url: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    verification_code_ttl_seconds: int
    session_ttl_seconds: int


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _float(value: str, default: float = 0.0) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    backend = (os.getenv("ACCOUNT_BACKEND") or BACKEND_HTTP).strip().lower()
    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        account_backend=backend,
        base_url=os.getenv("API_BASE_URL", "http://localhost:8000/api").rstrip("/"),
        service_key=os.getenv("SERVICE_KEY", ""),
        webhook_url=os.getenv("WEBHOOK_URL", "").strip(),
        verify_webhook_url=os.getenv("VERIFY_WEBHOOK_URL", "").strip(),
        request_timeout_seconds=_float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"), 15.0),
        database_url=os.getenv("DATABASE_URL", ""),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT", "465"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
        verification_code_ttl_seconds=_int(os.getenv("VERIFICATION_CODE_TTL_SECONDS", "900"), 900),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "86400"), 86400),
    )
