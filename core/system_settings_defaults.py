"""Default values for application configuration."""
from __future__ import annotations

DEFAULT_APPLICATION_SETTINGS: dict[str, object] = {
    "SECRET_KEY": "default-secret-key",
    "JWT_SECRET_KEY": "default-jwt-secret",
    "ACCESS_TOKEN_ISSUER": "proxy-admin",
    "ACCESS_TOKEN_AUDIENCE": "proxy-admin",
    "ACCESS_TOKEN_TTL_SECONDS": 3600,
    "LANGUAGES": ["ja", "en"],
    "BABEL_DEFAULT_LOCALE": "en",
    "BABEL_DEFAULT_TIMEZONE": "Asia/Tokyo",
    "CELERY_BROKER_URL": "redis://localhost:6379/0",
    "CELERY_RESULT_BACKEND": "redis://localhost:6379/0",
    # 証明書一覧のページサイズ
    "CERTIFICATE_PAGE_LIMIT_DEFAULT": 10,
    "CERTIFICATE_PAGE_LIMIT_MAX": 100,
    "CERTIFICATE_PROVISIONING_ENABLED": True,
    "MKCERT_VALID_DAYS": 365,
}

__all__ = ["DEFAULT_APPLICATION_SETTINGS"]
