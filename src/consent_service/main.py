from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from consent_service import __version__
from consent_service.auth_gate import AuthenticationGate
from consent_service.config import Settings, settings
from consent_service.db import AsyncSessionLocal, create_tables, engine
from consent_service.exceptions import ConsentServiceError
from consent_service.logging_config import configure_logging, logger, setup_logging
from consent_service.rate_limiting import setup_rate_limiting
from consent_service.routers import (
    auth_routes,
    connection_routes,
    consent_routes,
    identity_routes,
    user_routes,
)
from consent_service.security import TokenIssuer, TokenValidator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: optional table creation, engine disposal."""
    logger.info("Application startup sequence initiated.")
    app_settings: Settings = app.state.settings
    # The engine behind the session factory the application was built with
    bind = app.state.session_factory.kw.get("bind") or engine

    if app_settings.AUTO_CREATE_TABLES:
        try:
            await create_tables(bind=bind)
            logger.info("Database tables created or already present.")
        except Exception as e:
            logger.error(
                f"Failed to create database tables: {e.__class__.__name__}: {e}"
            )
            raise

    yield

    logger.info("Application shutdown sequence initiated.")
    await bind.dispose()
    logger.info("Application shutdown complete.")


def create_app(
    app_settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker] = None,
) -> FastAPI:
    """
    Builds the application.

    The signing key is read once here and handed to the issuer and the
    validator; the gate gets the validator and the session factory it should
    read consents from.
    """
    app_settings = app_settings or settings
    session_factory = session_factory or AsyncSessionLocal

    app = FastAPI(
        title="Contextual Consent Service API",
        description="Consent-scoped token authentication for contextual identity sharing.",
        version=__version__,
        root_path=app_settings.ROOT_PATH,
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Authentication",
                "description": "Login, registration and silent token renewal.",
            },
            {
                "name": "Consents",
                "description": "Granting, listing and revoking client consents.",
            },
            {"name": "Contexts", "description": "The user's identity contexts."},
            {"name": "Attributes", "description": "The user's identity attributes."},
            {"name": "Users", "description": "Profiles and attributes shared with clients."},
            {"name": "Connections", "description": "Linked data provider accounts."},
        ],
        swagger_ui_parameters={"persistAuthorization": True},
    )

    app.state.settings = app_settings
    app.state.session_factory = session_factory
    app.state.token_issuer = TokenIssuer(
        app_settings.JWT_SECRET_KEY,
        algorithm=app_settings.JWT_ALGORITHM,
        issuer=app_settings.JWT_ISSUER,
        audience=app_settings.JWT_AUDIENCE,
    )
    app.state.token_validator = TokenValidator(
        app_settings.JWT_SECRET_KEY,
        algorithm=app_settings.JWT_ALGORITHM,
        issuer=app_settings.JWT_ISSUER,
        audience=app_settings.JWT_AUDIENCE,
    )

    # Middleware runs in reverse order of registration: CORS first, gate last
    app.add_middleware(
        AuthenticationGate,
        validator=app.state.token_validator,
        session_factory=session_factory,
        cookie_name=app_settings.JWT_COOKIE_NAME,
        revocation_tombstones=app_settings.CONSENT_REVOCATION_TOMBSTONES,
    )
    setup_logging(app)
    setup_rate_limiting(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_routes.router)
    app.include_router(consent_routes.router)
    app.include_router(identity_routes.context_router)
    app.include_router(identity_routes.attribute_router)
    app.include_router(user_routes.router)
    app.include_router(connection_routes.router)

    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health(request: Request):
        """Liveness probe; reports the database without failing on it."""
        database = "ok"
        try:
            async with request.app.state.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning(f"Health check database probe failed: {e}")
            database = "unavailable"
        return {
            "status": "ok",
            "version": __version__,
            "environment": app_settings.ENVIRONMENT.value,
            "database": database,
        }

    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTPException: {exc.status_code} {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.error(f"ValidationError: {exc.errors()}")
        return JSONResponse(
            status_code=422, content={"detail": jsonable_encoder(exc.errors())}
        )

    @app.exception_handler(ConsentServiceError)
    async def consent_service_error_handler(request: Request, exc: ConsentServiceError):
        logger.error(f"{exc.code}: {exc.message}")
        return JSONResponse(status_code=400, content=exc.to_dict())


configure_logging()
app = create_app()
