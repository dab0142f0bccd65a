"""
Exception classes for the consent service.

Token validation failures all derive from TokenValidationError. The
authentication gate collapses every one of them into "unauthenticated"; the
`reason` only ever reaches the logs.
"""

from typing import Any, Dict, Optional


class ConsentServiceError(Exception):
    """Base exception for all consent service errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for logs and API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class TokenValidationError(ConsentServiceError):
    """A bearer token could not be accepted."""

    reason = "invalid_token"

    def __init__(self, message: str = "Invalid authentication token"):
        super().__init__(message, code=self.reason.upper())


class MalformedTokenError(TokenValidationError):
    """The token is not a well-formed JWT or lacks required claims."""

    reason = "malformed"


class InvalidSignatureError(TokenValidationError):
    """The token signature does not match the signing key."""

    reason = "invalid_signature"


class StructurallyExpiredError(TokenValidationError):
    """The token's own exp claim is in the past."""

    reason = "expired_by_claim"

    def __init__(self, message: str = "Authentication token has expired"):
        super().__init__(message)


class DuplicateNameError(ConsentServiceError):
    """A user-scoped name (username, attribute name) is already taken."""

    def __init__(self, kind: str, name: str):
        super().__init__(
            f"{kind.capitalize()} '{name}' already exists.",
            code="DUPLICATE_NAME",
            details={"kind": kind, "name": name},
        )


class UnshareableAttributeError(ConsentServiceError):
    """A consent referenced attributes that are unknown or not visible."""

    def __init__(self, attribute_ids):
        super().__init__(
            "Only existing, visible attributes can be shared.",
            code="UNSHAREABLE_ATTRIBUTE",
            details={"attribute_ids": sorted(attribute_ids)},
        )
