from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from consent_service.utils import ensure_utc

from .common_schemas import CamelModel


class ConnectionCreateRequest(CamelModel):
    provider_id: str = Field(..., min_length=1, max_length=100)
    provider_user_id: Optional[str] = Field(None, max_length=200)
    context_id: Optional[str] = None
    provider_access_token: str = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "providerId": "google",
                    "providerUserId": "108234",
                    "contextId": "ctx-1a2b3c4d",
                    "providerAccessToken": "ya29.a0Af...",
                }
            ]
        }
    )


class ConnectionResponse(CamelModel):
    """A linked provider. The provider access token is never sent back."""

    id: str
    provider_id: str
    provider_user_id: Optional[str] = None
    context_id: Optional[str] = None
    connected_at: datetime

    @field_validator("connected_at")
    def as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
