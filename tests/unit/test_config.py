import pytest
from pydantic import ValidationError

from consent_service.config import Environment, Settings


def test_test_environment_is_loaded(test_settings):
    assert test_settings.is_testing()
    assert not test_settings.is_production()
    assert test_settings.RATE_LIMIT_ENABLED is False


def test_defaults(test_settings):
    assert test_settings.JWT_ALGORITHM == "HS256"
    assert test_settings.JWT_COOKIE_NAME == "JWT"
    assert test_settings.CONSENT_REVOCATION_TOMBSTONES is True


def test_short_secret_is_rejected():
    with pytest.raises(ValidationError):
        Settings(CONSENT_SERVICE_JWT_SECRET_KEY="short")


@pytest.mark.parametrize(
    "url",
    [
        "postgres://user:pw@db:5432/consents",
        "postgresql://user:pw@db:5432/consents",
    ],
)
def test_postgres_urls_use_the_async_driver(url):
    configured = Settings(CONSENT_SERVICE_DATABASE_URL=url)

    assert configured.DATABASE_URL == "postgresql+psycopg://user:pw@db:5432/consents"


def test_environment_from_alias():
    configured = Settings(CONSENT_SERVICE_ENVIRONMENT="production")

    assert configured.ENVIRONMENT is Environment.PRODUCTION
    assert configured.is_production()
