"""
Helper functions and fixtures shared by the test modules.
"""
from typing import Dict, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker

from consent_service.config import Settings
from consent_service.crud import user_crud
from consent_service.models.user import User
from consent_service.security import TokenIssuer, TokenValidator

TEST_PASSWORD = "correct-horse-battery"
CLIENT_ID = "https://shop.example.com"
OTHER_CLIENT_ID = "https://news.example.org"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        CONSENT_SERVICE_ROOT_PATH="",
        CONSENT_SERVICE_RATE_LIMIT_ENABLED=False,
    )


@pytest.fixture
def issuer(test_settings: Settings) -> TokenIssuer:
    return TokenIssuer(
        test_settings.JWT_SECRET_KEY,
        algorithm=test_settings.JWT_ALGORITHM,
        issuer=test_settings.JWT_ISSUER,
        audience=test_settings.JWT_AUDIENCE,
    )


@pytest.fixture
def validator(test_settings: Settings) -> TokenValidator:
    return TokenValidator(
        test_settings.JWT_SECRET_KEY,
        algorithm=test_settings.JWT_ALGORITHM,
        issuer=test_settings.JWT_ISSUER,
        audience=test_settings.JWT_AUDIENCE,
    )


async def seed_test_user(
    session_factory: async_sessionmaker,
    username: str = "alice",
    password: str = TEST_PASSWORD,
    provision: bool = True,
) -> User:
    """Creates and commits a user, with the default contexts unless told otherwise."""
    async with session_factory() as session:
        user = await user_crud.create_user(session, username=username, password=password)
        if provision:
            await user_crud.provision_default_identity(session, user)
        await session.commit()
        return user


@pytest_asyncio.fixture
async def seeded_user(session_factory: async_sessionmaker) -> User:
    return await seed_test_user(session_factory)


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def visible_attribute_id(user: User, name: str = "Username") -> Optional[str]:
    for attribute in user.attributes:
        if attribute.name == name:
            return attribute.id
    return None
