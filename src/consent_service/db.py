from typing import Any, AsyncGenerator, Dict

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from consent_service.config import settings
from consent_service.logging_config import logger

# --- 1. Centralized Configuration Access ---
DATABASE_URL = settings.DATABASE_URL


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Engine keyword arguments for the configured backend."""
    options: Dict[str, Any] = {
        # Log SQL statements in DEBUG mode only.
        "echo": settings.LOGGING_LEVEL.upper() == "DEBUG",
    }
    if database_url.startswith("sqlite"):
        # SQLite manages its own pool and has no server-side settings
        return options

    options.update(
        # --- Connection Pool Settings ---
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
        # Discard dead connections on checkout instead of failing the request
        pool_pre_ping=True,
        connect_args={
            "application_name": "consent_service",
            "options": "-c timezone=UTC"
            + ("" if settings.is_testing() else " -c statement_timeout=5000"),
        },
    )
    return options


# --- 2. Engine ---
engine: AsyncEngine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# --- 3. Standard Session Factory ---
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

# --- 4. Declarative Base ---
# All SQLAlchemy models will inherit from this Base.
Base = declarative_base()


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create all tables known to the metadata (development and tests)."""
    # Import models so every table is registered on Base.metadata
    from consent_service import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# --- 5. Session Dependency ---
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a transactional, auto-closing database session.

    1. A new session is created for each request.
    2. The session is committed if the route handler finishes without errors.
    3. Any database error causes a rollback before it is re-raised.
    """
    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed: {e}", exc_info=True)
        await session.rollback()
        raise
    finally:
        await session.close()


# --- 6. Upserts ---
# Backends whose INSERT supports ON CONFLICT clauses
_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(db_session: AsyncSession):
    """The INSERT construct of the session's backend, for ON CONFLICT upserts."""
    dialect = db_session.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Upserts are not supported on {dialect}")
