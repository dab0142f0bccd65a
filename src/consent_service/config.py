from enum import Enum
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    # General App settings
    ENVIRONMENT: Environment = Field(
        Environment.DEVELOPMENT, alias="CONSENT_SERVICE_ENVIRONMENT"
    )
    LOGGING_LEVEL: str = Field("INFO", alias="CONSENT_SERVICE_LOGGING_LEVEL")
    ROOT_PATH: str = Field("/api/v1", alias="CONSENT_SERVICE_ROOT_PATH")

    # Database Configuration
    DATABASE_URL: str = Field(..., alias="CONSENT_SERVICE_DATABASE_URL")
    AUTO_CREATE_TABLES: bool = Field(False, alias="CONSENT_SERVICE_AUTO_CREATE_TABLES")

    # JWT Configuration (one process-wide symmetric key)
    JWT_SECRET_KEY: str = Field(..., alias="CONSENT_SERVICE_JWT_SECRET_KEY")
    JWT_ALGORITHM: str = Field("HS256", alias="CONSENT_SERVICE_JWT_ALGORITHM")
    JWT_ISSUER: str = Field("contextual_consent_service", alias="CONSENT_SERVICE_JWT_ISSUER")
    JWT_AUDIENCE: str = Field("contextual_clients", alias="CONSENT_SERVICE_JWT_AUDIENCE")
    JWT_COOKIE_NAME: str = Field("JWT", alias="CONSENT_SERVICE_JWT_COOKIE_NAME")

    # When enabled, revoking a consent rejects tokens issued before the revocation
    CONSENT_REVOCATION_TOMBSTONES: bool = Field(
        True, alias="CONSENT_SERVICE_REVOCATION_TOMBSTONES"
    )

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:3100",
            "http://localhost:3200",
        ],
        alias="CONSENT_SERVICE_CORS_ORIGINS",
    )

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(True, alias="CONSENT_SERVICE_RATE_LIMIT_ENABLED")
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_LOGIN: str = "5/minute"
    RATE_LIMIT_REGISTER: str = "3/minute"

    @field_validator("JWT_SECRET_KEY")
    def validate_jwt_secret(cls, v: str, info: Any) -> str:
        if len(v) < 16:
            raise ValueError("JWT secret key must be at least 16 characters long")
        return v

    @field_validator("DATABASE_URL")
    def validate_database_url(cls, v: str) -> str:
        # Plain postgres URLs are upgraded to the async psycopg driver
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg://", 1)
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg://", 1)
        return v

    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    def is_development(self) -> bool:
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        return self.ENVIRONMENT == Environment.TESTING

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Instantiate the settings
settings = Settings()
