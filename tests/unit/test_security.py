"""
Unit tests for token issuing, token validation and password hashing.
"""
from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from consent_service.exceptions import (
    InvalidSignatureError,
    MalformedTokenError,
    StructurallyExpiredError,
    TokenValidationError,
)
from consent_service.models.consent import TokenValidity
from consent_service.security import (
    CLIENT_ID_CLAIM,
    TokenIssuer,
    TokenValidator,
    hash_password,
    verify_password,
)
from consent_service.utils import utcnow

CLIENT_ID = "https://shop.example.com"


@pytest.fixture
def user():
    return SimpleNamespace(id="user-123", username="alice", roles=["ROLE_USER", "ROLE_ADMIN"])


class TestTokenIssuer:
    def test_dashboard_token_round_trip(self, issuer, validator, user):
        claims = validator.parse_and_verify(issuer.issue_dashboard_token(user))

        assert claims.subject == "alice"
        assert claims.user_id == "user-123"
        assert claims.roles == ["ROLE_USER", "ROLE_ADMIN"]
        assert claims.client_id is None
        assert not claims.is_consent_token

    def test_dashboard_token_lives_one_day(self, issuer, validator, user):
        claims = validator.parse_and_verify(issuer.issue_dashboard_token(user))

        assert claims.expires_at - claims.issued_at == timedelta(days=1)

    def test_consent_token_round_trip(self, issuer, validator, user):
        token = issuer.issue_consent_token(user, CLIENT_ID, TokenValidity.ONE_HOUR)
        claims = validator.parse_and_verify(token)

        assert claims.subject == "alice"
        assert claims.user_id == "user-123"
        assert claims.client_id == CLIENT_ID
        assert claims.validity == TokenValidity.ONE_HOUR
        assert claims.is_consent_token

    def test_consent_token_exp_is_the_longest_policy(self, issuer, validator, user):
        token = issuer.issue_consent_token(user, CLIENT_ID, TokenValidity.ONE_HOUR)
        claims = validator.parse_and_verify(token)

        assert claims.expires_at - claims.issued_at == TokenValidity.ONE_MONTH.duration

    def test_roles_are_comma_joined(self, issuer, user):
        token = issuer.issue_dashboard_token(user)
        payload = jwt.get_unverified_claims(token)

        assert payload["roles"] == "ROLE_USER,ROLE_ADMIN"
        assert CLIENT_ID_CLAIM not in payload

    def test_consent_token_requires_client(self, issuer, user):
        with pytest.raises(ValueError):
            issuer.issue_consent_token(user, "", TokenValidity.ONE_DAY)

    def test_issuer_requires_key(self):
        with pytest.raises(ValueError):
            TokenIssuer("")


class TestTokenValidator:
    def test_garbage_is_malformed(self, validator):
        with pytest.raises(MalformedTokenError):
            validator.parse_and_verify("not-a-token")

    def test_empty_is_malformed(self, validator):
        with pytest.raises(MalformedTokenError):
            validator.parse_and_verify("")

    def test_foreign_key_is_invalid_signature(self, validator, user):
        other = TokenIssuer(
            "another-secret-key-entirely",
            issuer="contextual_consent_service",
            audience="contextual_clients",
        )
        with pytest.raises(InvalidSignatureError):
            validator.parse_and_verify(other.issue_dashboard_token(user))

    def test_expired_dashboard_token(self, issuer, validator, user):
        token = issuer.issue_dashboard_token(
            user, issued_at=utcnow() - timedelta(days=1, minutes=1)
        )
        with pytest.raises(StructurallyExpiredError) as exc_info:
            validator.parse_and_verify(token)
        assert exc_info.value.reason == "expired_by_claim"

    def test_dashboard_token_valid_just_before_a_day(self, issuer, validator, user):
        token = issuer.issue_dashboard_token(
            user, issued_at=utcnow() - timedelta(hours=23, minutes=59)
        )
        assert validator.parse_and_verify(token).user_id == "user-123"

    def test_wrong_audience_is_rejected(self, validator, user, test_settings):
        other = TokenIssuer(
            test_settings.JWT_SECRET_KEY,
            issuer=test_settings.JWT_ISSUER,
            audience="somebody-else",
        )
        with pytest.raises(TokenValidationError):
            validator.parse_and_verify(other.issue_dashboard_token(user))

    def test_missing_subject_is_malformed(self, validator, test_settings):
        now = utcnow()
        token = jwt.encode(
            {
                "jti": "user-123",
                "iat": now,
                "exp": now + timedelta(hours=1),
                "iss": test_settings.JWT_ISSUER,
                "aud": test_settings.JWT_AUDIENCE,
            },
            test_settings.JWT_SECRET_KEY,
            algorithm="HS256",
        )
        with pytest.raises(MalformedTokenError):
            validator.parse_and_verify(token)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("s3cret-password")

        assert hashed != "s3cret-password"
        assert verify_password("s3cret-password", hashed)
        assert not verify_password("wrong-password", hashed)
