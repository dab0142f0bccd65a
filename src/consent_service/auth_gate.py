"""
Per-request authentication for dashboard and consent tokens.

The gate never rejects a request by itself. It decides whether the caller is
authenticated, stores the resulting principal (or None) on
``request.state.principal`` and always hands the request on. Routes that need
a caller depend on ``get_current_principal`` and answer 401 themselves.

Consent tokens carry no reliable lifetime of their own: on every request the
current consent record for (user, client) is read and the token is accepted
only while ``issued_at + consent.token_validity.duration`` lies in the future.
A token issued before the client's last revocation stays rejected, even once
the user consents again.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from consent_service.crud import consent_crud
from consent_service.exceptions import TokenValidationError
from consent_service.models.consent import TokenValidity
from consent_service.schemas.auth_schemas import Principal
from consent_service.security import TokenClaims, TokenValidator
from consent_service.security_audit import log_token_rejected
from consent_service.utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


class GateReason(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    FIRST_CONTACT = "first_contact"
    NO_TOKEN = "no_token"
    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED_BY_CLAIM = "expired_by_claim"
    EXPIRED_BY_POLICY = "expired_by_policy"
    REVOKED = "revoked"
    ERROR = "error"


_VALIDATION_REASONS = {
    "malformed": GateReason.MALFORMED,
    "invalid_signature": GateReason.INVALID_SIGNATURE,
    "expired_by_claim": GateReason.EXPIRED_BY_CLAIM,
}


@dataclass(frozen=True)
class GateDecision:
    principal: Optional[Principal]
    reason: GateReason

    @property
    def authenticated(self) -> bool:
        return self.principal is not None


def extract_token(request: Request, cookie_name: str = "JWT") -> Optional[str]:
    """Bearer header first, then the session cookie."""
    authorization = request.headers.get("Authorization")
    if authorization and authorization.lower().startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip()
        if token:
            return token
    cookie = request.cookies.get(cookie_name)
    return cookie or None


def effective_expiry(issued_at: datetime, validity: TokenValidity) -> datetime:
    """When a consent token stops being accepted under the given policy."""
    return ensure_utc(issued_at) + TokenValidity(validity).duration


def _principal(claims: TokenClaims) -> Principal:
    return Principal(
        user_id=claims.user_id,
        username=claims.subject,
        roles=claims.roles,
        client_id=claims.client_id,
    )


def _reject(reason: GateReason, claims: Optional[TokenClaims] = None, detail: Optional[str] = None) -> GateDecision:
    log_token_rejected(
        reason.value,
        user_id=claims.user_id if claims else None,
        client_id=claims.client_id if claims else None,
        detail=detail,
    )
    return GateDecision(principal=None, reason=reason)


class ConsentAuthenticator:
    """Turns a raw token into a GateDecision."""

    def __init__(
        self,
        validator: TokenValidator,
        session_factory: async_sessionmaker,
        revocation_tombstones: bool = True,
    ):
        self.validator = validator
        self.session_factory = session_factory
        self.revocation_tombstones = revocation_tombstones

    async def authenticate(
        self, token: Optional[str], now: Optional[datetime] = None
    ) -> GateDecision:
        if not token:
            return GateDecision(principal=None, reason=GateReason.NO_TOKEN)

        try:
            claims = self.validator.parse_and_verify(token)
        except TokenValidationError as e:
            return _reject(
                _VALIDATION_REASONS.get(e.reason, GateReason.MALFORMED), detail=e.message
            )

        if not claims.is_consent_token:
            return GateDecision(principal=_principal(claims), reason=GateReason.AUTHENTICATED)

        now = now or utcnow()
        async with self.session_factory() as session:
            consent = await consent_crud.get_consent_by_client_id(
                session, claims.user_id, claims.client_id, include_accesses=False
            )
            if consent is None:
                revocation = None
                if self.revocation_tombstones:
                    revocation = await consent_crud.get_revocation(
                        session, claims.user_id, claims.client_id
                    )
                if revocation is not None and ensure_utc(revocation.revoked_at) >= claims.issued_at:
                    return _reject(
                        GateReason.REVOKED,
                        claims,
                        detail=f"Consent {revocation.consent_id} was revoked",
                    )
                # No consent yet: the client is still in its first login flow
                return GateDecision(principal=_principal(claims), reason=GateReason.FIRST_CONTACT)

            consent_id = consent.id
            validity = consent.token_validity
            not_before = ensure_utc(consent.tokens_not_before)

        if (
            self.revocation_tombstones
            and not_before is not None
            and claims.issued_at <= not_before
        ):
            return _reject(
                GateReason.REVOKED,
                claims,
                detail=f"Token predates a revocation of client {claims.client_id}",
            )

        expires_at = effective_expiry(claims.issued_at, validity)
        if now >= expires_at:
            return _reject(
                GateReason.EXPIRED_BY_POLICY,
                claims,
                detail=f"Token expired at {expires_at.isoformat()} under {validity.value}",
            )

        await consent_crud.audit_access(self.session_factory, consent_id, accessed_at=now)
        return GateDecision(principal=_principal(claims), reason=GateReason.AUTHENTICATED)


class AuthenticationGate(BaseHTTPMiddleware):
    """Starlette middleware wrapping ConsentAuthenticator."""

    def __init__(
        self,
        app: ASGIApp,
        validator: TokenValidator,
        session_factory: async_sessionmaker,
        cookie_name: str = "JWT",
        revocation_tombstones: bool = True,
    ):
        super().__init__(app)
        self.cookie_name = cookie_name
        self.authenticator = ConsentAuthenticator(
            validator, session_factory, revocation_tombstones=revocation_tombstones
        )

    async def authenticate(
        self, token: Optional[str], now: Optional[datetime] = None
    ) -> GateDecision:
        return await self.authenticator.authenticate(token, now=now)

    async def dispatch(self, request: Request, call_next):
        try:
            decision = await self.authenticate(extract_token(request, self.cookie_name))
        except Exception as e:
            # Storage or any other failure: the caller simply stays anonymous
            logger.error(f"Authentication gate failed: {e}", exc_info=True)
            decision = GateDecision(principal=None, reason=GateReason.ERROR)

        request.state.principal = decision.principal
        request.state.auth_reason = decision.reason
        if decision.principal is not None:
            logger.debug(
                f"Request authenticated for user {decision.principal.user_id} "
                f"({decision.reason.value})"
            )
        return await call_next(request)
