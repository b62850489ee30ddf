import os

from dotenv import load_dotenv
from sqlalchemy.pool import StaticPool

from core.system_settings_defaults import DEFAULT_APPLICATION_SETTINGS

load_dotenv()


def _default(name: str):
    value = os.environ.get(name)
    if value is not None:
        return value
    return DEFAULT_APPLICATION_SETTINGS.get(name)


class BaseApplicationSettings:
    """Base Flask application configuration populated from the environment."""

    SECRET_KEY = _default("SECRET_KEY")
    JWT_SECRET_KEY = _default("JWT_SECRET_KEY")
    ACCESS_TOKEN_ISSUER = _default("ACCESS_TOKEN_ISSUER")
    ACCESS_TOKEN_AUDIENCE = _default("ACCESS_TOKEN_AUDIENCE")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    db_uri = os.environ.get("DATABASE_URI", "sqlite://")
    SQLALCHEMY_DATABASE_URI = db_uri

    # Internationalisation
    LANGUAGES = list(DEFAULT_APPLICATION_SETTINGS.get("LANGUAGES") or ["en", "ja"])
    BABEL_TRANSLATION_DIRECTORIES = os.path.join(
        os.path.dirname(__file__), "translations"
    )
    BABEL_DEFAULT_LOCALE = _default("BABEL_DEFAULT_LOCALE")
    BABEL_DEFAULT_TIMEZONE = _default("BABEL_DEFAULT_TIMEZONE")

    # Database stability
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }

    if not db_uri.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({
            "pool_size": 10,
            "max_overflow": 20,
        })
        if db_uri.startswith("mysql"):
            SQLALCHEMY_ENGINE_OPTIONS["connect_args"] = {"connect_timeout": 10}

    # Celery
    CELERY_BROKER_URL = _default("CELERY_BROKER_URL")
    CELERY_RESULT_BACKEND = _default("CELERY_RESULT_BACKEND")

    # Certificates
    CERTIFICATE_PROVISIONING_ENABLED = _default("CERTIFICATE_PROVISIONING_ENABLED")
    CERTIFICATE_PAGE_LIMIT_DEFAULT = _default("CERTIFICATE_PAGE_LIMIT_DEFAULT")
    CERTIFICATE_PAGE_LIMIT_MAX = _default("CERTIFICATE_PAGE_LIMIT_MAX")
    MKCERT_VALID_DAYS = _default("MKCERT_VALID_DAYS")


class Config(BaseApplicationSettings):
    """本番・開発用の設定"""


class TestConfig(BaseApplicationSettings):
    """テスト用の設定クラス"""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }

    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret"
    ACCESS_TOKEN_ISSUER = "test-issuer"
    ACCESS_TOKEN_AUDIENCE = "test-audience"
    CERTIFICATE_PROVISIONING_ENABLED = False
    CERTIFICATE_PAGE_LIMIT_DEFAULT = 10
    CERTIFICATE_PAGE_LIMIT_MAX = 100
