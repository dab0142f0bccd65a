# src/consent_service/security.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict

from consent_service.exceptions import (
    InvalidSignatureError,
    MalformedTokenError,
    StructurallyExpiredError,
)
from consent_service.models.consent import TokenValidity
from consent_service.utils import utcnow

# One CryptContext for the process, configured for bcrypt.
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

CLIENT_ID_CLAIM = "clientId"
ROLES_CLAIM = "roles"
VALIDITY_CLAIM = "validity"

DASHBOARD_TOKEN_VALIDITY = TokenValidity.ONE_DAY


def hash_password(password: str) -> str:
    """
    Hashes a password using bcrypt.
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifies a plain password against a hashed password.
    Returns True if the password matches, False otherwise.
    """
    return pwd_context.verify(plain_password, hashed_password)


class TokenClaims(BaseModel):
    """Verified claims of an access token."""

    subject: str
    user_id: str
    roles: List[str] = []
    issued_at: datetime
    expires_at: Optional[datetime] = None
    client_id: Optional[str] = None
    validity: Optional[TokenValidity] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_consent_token(self) -> bool:
        # A dashboard token is recognised by the absence of the clientId claim
        return self.client_id is not None


def _join_roles(roles: Optional[List[str]]) -> str:
    return ",".join(roles or [])


def _split_roles(raw: Any) -> List[str]:
    if not raw:
        return []
    if isinstance(raw, list):
        return [str(role) for role in raw]
    return [role for role in str(raw).split(",") if role]


class TokenIssuer:
    """
    Mints dashboard and consent tokens with a single symmetric key.

    The key is handed in at construction and never changes afterwards.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        if not secret_key:
            raise ValueError("A signing key is required to issue tokens")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._issuer = issuer
        self._audience = audience

    def _base_claims(self, user: Any, issued_at: datetime) -> Dict[str, Any]:
        claims: Dict[str, Any] = {
            "sub": user.username,
            "jti": str(user.id),
            ROLES_CLAIM: _join_roles(user.roles),
            "iat": issued_at,
        }
        if self._issuer:
            claims["iss"] = self._issuer
        if self._audience:
            claims["aud"] = self._audience
        return claims

    def _encode(self, claims: Dict[str, Any]) -> str:
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def issue_dashboard_token(
        self, user: Any, issued_at: Optional[datetime] = None
    ) -> str:
        """
        Creates a dashboard token for the user's own management session.
        Its lifetime is fixed at ONE_DAY through the standard exp claim.
        """
        now = issued_at or utcnow()
        claims = self._base_claims(user, now)
        claims["exp"] = now + DASHBOARD_TOKEN_VALIDITY.duration
        return self._encode(claims)

    def issue_consent_token(
        self,
        user: Any,
        client_id: str,
        validity: TokenValidity,
        issued_at: Optional[datetime] = None,
    ) -> str:
        """
        Creates a token bound to a client application.

        The exp claim is only an upper bound (the longest validity policy);
        the effective lifetime is decided on every request from the live
        consent record.
        """
        if not client_id:
            raise ValueError("A client id is required for a consent token")
        now = issued_at or utcnow()
        claims = self._base_claims(user, now)
        claims[CLIENT_ID_CLAIM] = client_id
        claims[VALIDITY_CLAIM] = TokenValidity(validity).value
        claims["exp"] = now + TokenValidity.longest().duration
        return self._encode(claims)


class TokenValidator:
    """Verifies signature and structure of tokens minted by TokenIssuer."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        if not secret_key:
            raise ValueError("A signing key is required to validate tokens")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._issuer = issuer
        self._audience = audience

    def parse_and_verify(self, raw_token: str) -> TokenClaims:
        """
        Decodes a token and returns its claims.

        Raises MalformedTokenError, InvalidSignatureError or
        StructurallyExpiredError; callers that only need a yes/no answer can
        catch TokenValidationError.
        """
        if not raw_token or not isinstance(raw_token, str):
            raise MalformedTokenError("JWT claims string is empty")

        # Structure first, so that garbage is not reported as a bad signature
        try:
            jwt.get_unverified_header(raw_token)
            jwt.get_unverified_claims(raw_token)
        except JWTError as e:
            raise MalformedTokenError(f"Invalid JWT token: {e}")

        try:
            payload = jwt.decode(
                raw_token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={
                    "verify_signature": True,
                    "verify_aud": self._audience is not None,
                    "verify_iss": self._issuer is not None,
                    "verify_exp": True,
                },
            )
        except ExpiredSignatureError as e:
            raise StructurallyExpiredError(f"JWT token is expired: {e}")
        except JWTClaimsError as e:
            raise MalformedTokenError(f"JWT claims are invalid: {e}")
        except JWTError as e:
            raise InvalidSignatureError(f"Signature not valid: {e}")

        # Required claims (sub, jti, iat) are enforced by _to_claims
        return self._to_claims(payload)

    @staticmethod
    def _to_claims(payload: Dict[str, Any]) -> TokenClaims:
        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = (
                datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
                if payload.get("exp") is not None
                else None
            )
            raw_validity = payload.get(VALIDITY_CLAIM)
            client_id = payload.get(CLIENT_ID_CLAIM)
            return TokenClaims(
                subject=payload["sub"],
                user_id=str(payload["jti"]),
                roles=_split_roles(payload.get(ROLES_CLAIM)),
                issued_at=issued_at,
                expires_at=expires_at,
                client_id=str(client_id) if client_id else None,
                validity=TokenValidity(raw_validity) if raw_validity else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedTokenError(f"JWT claims are incomplete: {e}")
