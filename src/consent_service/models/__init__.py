from .user import User
from .identity import Context, IdentityAttribute
from .consent import Consent, ConsentAccess, ConsentRevocation, TokenValidity
from .connection import Connection

# This file will serve as the central point for importing all models
# within the consent_service.models package.
__all__ = [
    "User",
    "Context",
    "IdentityAttribute",
    "Consent",
    "ConsentAccess",
    "ConsentRevocation",
    "TokenValidity",
    "Connection",
]
