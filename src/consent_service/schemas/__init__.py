from .common_schemas import CamelModel
from .auth_schemas import AuthResponse, LoginRequest, Principal, RegisterRequest
from .connection_schemas import ConnectionCreateRequest, ConnectionResponse
from .consent_schemas import (
    ConsentCreateRequest,
    ConsentListResponse,
    ConsentResponse,
)
from .identity_schemas import (
    AttributeCreate,
    AttributeResponse,
    AttributeUpdate,
    ContextCreate,
    ContextResponse,
    ContextUpdate,
    UserProfileResponse,
)

__all__ = [
    "CamelModel",
    "AuthResponse",
    "LoginRequest",
    "Principal",
    "RegisterRequest",
    "ConnectionCreateRequest",
    "ConnectionResponse",
    "ConsentCreateRequest",
    "ConsentListResponse",
    "ConsentResponse",
    "AttributeCreate",
    "AttributeResponse",
    "AttributeUpdate",
    "ContextCreate",
    "ContextResponse",
    "ContextUpdate",
    "UserProfileResponse",
]
