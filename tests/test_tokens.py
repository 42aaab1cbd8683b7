"""Unit tests for auth/tokens.py -- claims layout and signing.

Covers:
- Decoded subject equals the user id (as text); issuer equals configured issuer
- exp == iat + configured TTL; nbf == iat
- username/email claims carried through
- TokenConfig rejects empty secrets and non-positive lifetimes
- Signing failures surface as InternalError
- The secret never appears in TokenConfig's repr
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from jose import JWTError, jwt

from auth.errors import InternalError
from auth.models import User
from auth.tokens import TokenConfig, TokenIssuer
from conftest import TEST_ISSUER, TEST_SECRET, TEST_TTL_MINUTES


def _user(user_id: int = 42) -> User:
    return User(id=user_id, username="alex", email="alex@x.com", phone="+1555", hashed_password="$2b$04$x")


def _decode(token: str, secret: str = TEST_SECRET) -> dict:
    return jwt.decode(token, secret, algorithms=["HS256"], issuer=TEST_ISSUER)


class TestIssue:
    def test_subject_and_issuer(self, issuer: TokenIssuer) -> None:
        claims = _decode(issuer.issue(_user(42)))
        assert claims["sub"] == "42"
        assert claims["iss"] == TEST_ISSUER

    def test_expiry_is_issued_at_plus_ttl(self, issuer: TokenIssuer) -> None:
        claims = _decode(issuer.issue(_user()))
        assert claims["exp"] - claims["iat"] == TEST_TTL_MINUTES * 60
        assert claims["nbf"] == claims["iat"]

    def test_issued_at_is_now(self, issuer: TokenIssuer) -> None:
        before = int(datetime.now(timezone.utc).timestamp())
        claims = _decode(issuer.issue(_user()))
        after = int(datetime.now(timezone.utc).timestamp())
        assert before <= claims["iat"] <= after

    def test_identity_claims(self, issuer: TokenIssuer) -> None:
        claims = _decode(issuer.issue(_user()))
        assert claims["username"] == "alex"
        assert claims["email"] == "alex@x.com"
        assert "hashed_password" not in claims

    def test_signed_with_configured_secret(self, issuer: TokenIssuer) -> None:
        token = issuer.issue(_user())
        with pytest.raises(JWTError):
            _decode(token, secret="some-other-secret")

    def test_expires_in_seconds(self, issuer: TokenIssuer) -> None:
        assert issuer.expires_in == TEST_TTL_MINUTES * 60

    def test_build_claims_is_deterministic(self, issuer: TokenIssuer) -> None:
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        claims = issuer.build_claims(_user(7), now=now)
        assert claims == {
            "iss": TEST_ISSUER,
            "sub": "7",
            "username": "alex",
            "email": "alex@x.com",
            "iat": 1704067200,
            "nbf": 1704067200,
            "exp": 1704067200 + TEST_TTL_MINUTES * 60,
        }

    def test_signing_failure_is_internal(self) -> None:
        broken = TokenIssuer(TokenConfig(secret=TEST_SECRET, algorithm="NOT-AN-ALGORITHM"))
        with pytest.raises(InternalError) as exc_info:
            broken.issue(_user())
        assert exc_info.value.message == "failed to generate token"


class TestTokenConfig:
    def test_defaults(self) -> None:
        config = TokenConfig(secret=TEST_SECRET)
        assert config.issuer == "all-in-backend"
        assert config.ttl_minutes == 60
        assert config.algorithm == "HS256"

    @pytest.mark.parametrize("secret", ["", "   "])
    def test_empty_secret_rejected(self, secret: str) -> None:
        with pytest.raises(ValueError):
            TokenConfig(secret=secret)

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_non_positive_ttl_rejected(self, ttl: int) -> None:
        with pytest.raises(ValueError):
            TokenConfig(secret=TEST_SECRET, ttl_minutes=ttl)

    def test_config_is_immutable(self) -> None:
        config = TokenConfig(secret=TEST_SECRET)
        with pytest.raises(AttributeError):
            config.ttl_minutes = 5  # type: ignore[misc]

    def test_repr_hides_secret(self) -> None:
        assert TEST_SECRET not in repr(TokenConfig(secret=TEST_SECRET))
