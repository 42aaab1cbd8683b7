"""
auth/tokens.py -- Signed access-token issuance.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured secret
       and carry issuer, subject (user id as text), username, email and the
       iat/nbf/exp timestamps. All three timestamps come from a single clock
       read, so exp - iat is exactly the configured lifetime.

  Config: TokenConfig is a frozen dataclass built once at startup and handed
       to TokenIssuer. Nothing here reads environment variables or module
       globals, so two issuers with different secrets can coexist (tests do).

  Scope: issuance only. Verifying or decoding tokens belongs to whichever
       service consumes them.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JOSEError, jwt

from auth.errors import InternalError

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("allin.auth")

DEFAULT_ISSUER = "all-in-backend"
DEFAULT_TTL_MINUTES = 60


@dataclass(frozen=True)
class TokenConfig:
    """Immutable signing configuration.

    secret is required. ttl_minutes must be a positive integer. Both are
    checked at construction so a misconfigured issuer fails at startup rather
    than on the first login.
    """

    secret: str
    issuer: str = DEFAULT_ISSUER
    ttl_minutes: int = DEFAULT_TTL_MINUTES
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.secret or not self.secret.strip():
            raise ValueError("token signing secret must not be empty")
        if isinstance(self.ttl_minutes, bool) or not isinstance(self.ttl_minutes, int) or self.ttl_minutes <= 0:
            raise ValueError("token ttl_minutes must be a positive integer")

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks.
        return f"TokenConfig(issuer={self.issuer!r}, ttl_minutes={self.ttl_minutes}, algorithm={self.algorithm!r})"


class TokenIssuer:
    """Builds and signs the claims set for an authenticated identity.

    Usage:
        issuer = TokenIssuer(TokenConfig(secret="...", issuer="all-in-backend"))
        token = issuer.issue(user)
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    @property
    def config(self) -> TokenConfig:
        return self._config

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return self._config.ttl_minutes * 60

    def build_claims(self, user: User, now: datetime | None = None) -> dict:
        """Return the claims dict for user, stamped at now (defaults to the current UTC time)."""
        now = now or datetime.now(timezone.utc)
        issued_at = int(now.timestamp())
        expires = int((now + timedelta(minutes=self._config.ttl_minutes)).timestamp())
        return {
            "iss": self._config.issuer,
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires,
        }

    def issue(self, user: User) -> str:
        """Sign a token for user. Raises InternalError if signing fails."""
        claims = self.build_claims(user)
        try:
            return jwt.encode(claims, self._config.secret, algorithm=self._config.algorithm)
        except (JOSEError, TypeError, ValueError) as exc:
            logger.error("Token signing failed for user_id=%s: %s", user.id, type(exc).__name__)
            raise InternalError("failed to generate token") from exc
