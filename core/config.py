"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the identity service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  Explicit token config: api/main.py copies the signing secret, issuer and TTL
      into an immutable auth.tokens.TokenConfig at startup. auth/ never reads
      Settings itself.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("allin.config")

DEFAULT_ISSUER = "all-in-backend"
DEFAULT_TTL_MINUTES = 60

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'allin_identity.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces the
    JWT_SECRET policy at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    port: int = 8080
    database_url: str = _DEFAULT_DB_URL
    # Comma-separated list. Parsed by cors_origins().
    cors_allowed_origins: str = "*"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_issuer: str = DEFAULT_ISSUER
    jwt_ttl_minutes: int = DEFAULT_TTL_MINUTES

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    init_balance: float = 0.0
    password_hash_rounds: int = 12

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("jwt_secret", "database_url", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("jwt_issuer", mode="before")
    @classmethod
    def default_blank_issuer(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_ISSUER
        return value.strip() if isinstance(value, str) else value

    @field_validator("jwt_ttl_minutes", mode="before")
    @classmethod
    def fallback_ttl(cls, value):
        """Fall back to the default lifetime for blank, unparseable or non-positive values."""
        try:
            minutes = int(str(value).strip())
        except (TypeError, ValueError):
            logger.warning("JWT_TTL_MINUTES=%r is not an integer; using %d", value, DEFAULT_TTL_MINUTES)
            return DEFAULT_TTL_MINUTES
        if minutes <= 0:
            logger.warning("JWT_TTL_MINUTES must be positive; using %d", DEFAULT_TTL_MINUTES)
            return DEFAULT_TTL_MINUTES
        return minutes

    @field_validator("password_hash_rounds")
    @classmethod
    def check_rounds(cls, value: int) -> int:
        # bcrypt accepts log2 cost factors 4..31
        if not 4 <= value <= 31:
            raise ValueError("PASSWORD_HASH_ROUNDS must be between 4 and 31.")
        return value

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Issued tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            JWT_SECRET is missing.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated JWT_SECRET. Tokens will not verify across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def cors_origins(self) -> list[str]:
        """Split CORS_ALLOWED_ORIGINS on commas, dropping blanks. Empty means ["*"]."""
        origins = [part.strip() for part in self.cors_allowed_origins.split(",") if part.strip()]
        return origins or ["*"]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
