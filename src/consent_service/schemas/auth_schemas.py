from typing import List, Optional

from pydantic import ConfigDict, EmailStr, Field

from .common_schemas import CamelModel


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)
    client_id: Optional[str] = Field(
        None,
        max_length=200,
        description="Identifier of the client application asking for a consent token.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"username": "alice", "password": "correct horse battery staple"},
                {
                    "username": "alice",
                    "password": "correct horse battery staple",
                    "clientId": "https://shop.example.com",
                },
            ]
        }
    )


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=72)
    email: Optional[EmailStr] = None


class AuthResponse(CamelModel):
    user_id: Optional[str] = None
    username: Optional[str] = None
    message: str
    token: Optional[str] = None


class Principal(CamelModel):
    """Who the authentication gate let through for the current request."""

    user_id: str
    username: str
    roles: List[str] = Field(default_factory=list)
    client_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_consent_scoped(self) -> bool:
        return self.client_id is not None
