"""ApplicationSettings のユニットテスト"""

from core.settings import ApplicationSettings
from core.system_settings_defaults import DEFAULT_APPLICATION_SETTINGS


def test_defaults_are_applied_when_env_missing():
    settings = ApplicationSettings(env={})

    assert settings.celery_broker_url == "redis://localhost:6379/0"
    assert settings.celery_result_backend == "redis://localhost:6379/0"
    assert settings.jwt_secret_key == DEFAULT_APPLICATION_SETTINGS["JWT_SECRET_KEY"]
    assert settings.access_token_issuer == "proxy-admin"
    assert settings.access_token_audience == "proxy-admin"
    assert settings.access_token_ttl_seconds == 3600
    assert settings.certificate_provisioning_enabled is True
    assert settings.certificate_page_limit_default == 10
    assert settings.certificate_page_limit_max == 100
    assert settings.mkcert_valid_days == 365
    assert settings.testing is False


def test_environment_overrides_are_reflected():
    env = {
        "CELERY_BROKER_URL": "redis://broker/1",
        "CELERY_RESULT_BACKEND": "redis://backend/2",
        "ACCESS_TOKEN_ISSUER": " issuer-x ",
        "ACCESS_TOKEN_AUDIENCE": "aud-x",
        "ACCESS_TOKEN_TTL_SECONDS": "60",
        "CERTIFICATE_PROVISIONING_ENABLED": "off",
        "CERTIFICATE_PAGE_LIMIT_DEFAULT": "5",
        "MKCERT_VALID_DAYS": "30",
        "TESTING": "yes",
    }

    settings = ApplicationSettings(env=env)

    assert settings.celery_broker_url == "redis://broker/1"
    assert settings.celery_result_backend == "redis://backend/2"
    assert settings.access_token_issuer == "issuer-x"
    assert settings.access_token_audience == "aud-x"
    assert settings.access_token_ttl_seconds == 60
    assert settings.certificate_provisioning_enabled is False
    assert settings.certificate_page_limit_default == 5
    assert settings.mkcert_valid_days == 30
    assert settings.testing is True


def test_redis_url_is_used_for_celery_when_specific_urls_missing():
    settings = ApplicationSettings(env={"REDIS_URL": "redis://cache:6379/3"})

    assert settings.celery_broker_url == "redis://cache:6379/3"
    assert settings.celery_result_backend == "redis://cache:6379/3"


def test_invalid_numbers_fall_back_and_limits_stay_positive():
    settings = ApplicationSettings(
        env={
            "ACCESS_TOKEN_TTL_SECONDS": "soon",
            "CERTIFICATE_PAGE_LIMIT_MAX": "0",
            "MKCERT_VALID_DAYS": "-5",
        }
    )

    assert settings.access_token_ttl_seconds == 3600
    assert settings.certificate_page_limit_max == 1
    assert settings.mkcert_valid_days == 1


def test_flask_config_wins_over_environment(app_context):
    app_context.config["CERTIFICATE_PAGE_LIMIT_MAX"] = 7
    settings = ApplicationSettings(env={"CERTIFICATE_PAGE_LIMIT_MAX": "50"})

    assert settings.certificate_page_limit_max == 7
    assert settings.certificate_provisioning_enabled is False
