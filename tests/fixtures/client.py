"""
Client fixtures for testing.
Provides the application, wired to the per-test database, and an HTTP client.
"""
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from consent_service.config import Settings
from consent_service.db import get_db
from consent_service.main import create_app


@pytest.fixture
def app_factory(
    session_factory: async_sessionmaker, test_settings: Settings
) -> Callable[..., FastAPI]:
    """Builds an application on the test database, optionally with other settings."""

    def _build(**overrides) -> FastAPI:
        app_settings = test_settings.model_copy(update=overrides)
        app = create_app(app_settings=app_settings, session_factory=session_factory)

        async def override_get_db():
            """Same contract as get_db, on the test database."""
            session = session_factory()
            try:
                yield session
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise
            finally:
                await session.close()

        app.dependency_overrides[get_db] = override_get_db
        return app

    return _build


@pytest.fixture
def test_app(app_factory) -> FastAPI:
    return app_factory()


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    An HTTP client that calls the application in-process.
    """
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
