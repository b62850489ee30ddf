"""Typed access to runtime configuration.

Lookup order for every key: the active Flask app's ``config``, then the
process environment (or the mapping handed to :class:`ApplicationSettings`),
then :data:`core.system_settings_defaults.DEFAULT_APPLICATION_SETTINGS`.

Production code uses the module level :data:`settings`; tests build their own
instance around a plain dict.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from flask import current_app, has_app_context

from core.system_settings_defaults import DEFAULT_APPLICATION_SETTINGS

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return default


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ApplicationSettings:
    """Expose strongly typed accessors for configuration values."""

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env

    def _lookup(self, key: str) -> Any:
        if has_app_context() and key in current_app.config:
            return current_app.config[key]
        if key in self._env:
            return self._env[key]
        return DEFAULT_APPLICATION_SETTINGS.get(key)

    def get(self, key: str, default=None):
        """Return the configured value for *key* or *default* if missing."""

        value = self._lookup(key)
        return default if value is None else value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._lookup(key)
        return default if value is None else _coerce_bool(value, default)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._lookup(key)
        return default if value is None else _coerce_int(value, default)

    def _redis_fallback(self, key: str) -> str:
        # ワーカー起動時は環境変数の REDIS_URL を優先的に共用する
        return self._env.get(key) or self._env.get("REDIS_URL") or str(self._lookup(key))

    @property
    def testing(self) -> bool:
        return self.get_bool("TESTING")

    # --- Celery ---------------------------------------------------------

    @property
    def celery_broker_url(self) -> str:
        return self._redis_fallback("CELERY_BROKER_URL")

    @property
    def celery_result_backend(self) -> str:
        return self._redis_fallback("CELERY_RESULT_BACKEND")

    # --- Access tokens --------------------------------------------------

    @property
    def jwt_secret_key(self) -> str:
        return str(self.get("JWT_SECRET_KEY", ""))

    @property
    def access_token_issuer(self) -> str:
        return str(self.get("ACCESS_TOKEN_ISSUER", "")).strip()

    @property
    def access_token_audience(self) -> str:
        return str(self.get("ACCESS_TOKEN_AUDIENCE", "")).strip()

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.get_int("ACCESS_TOKEN_TTL_SECONDS", 3600)

    # --- Certificates ---------------------------------------------------

    @property
    def certificate_provisioning_enabled(self) -> bool:
        return self.get_bool("CERTIFICATE_PROVISIONING_ENABLED", True)

    @property
    def certificate_page_limit_default(self) -> int:
        return max(self.get_int("CERTIFICATE_PAGE_LIMIT_DEFAULT", 10), 1)

    @property
    def certificate_page_limit_max(self) -> int:
        return max(self.get_int("CERTIFICATE_PAGE_LIMIT_MAX", 100), 1)

    @property
    def mkcert_valid_days(self) -> int:
        return max(self.get_int("MKCERT_VALID_DAYS", 365), 1)


settings = ApplicationSettings()

__all__ = ["ApplicationSettings", "settings"]
