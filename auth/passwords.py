"""
auth/passwords.py -- Password policy, hashing and verification.

Security design decisions:
  Hashing: bcrypt directly (no passlib wrapper). Each call draws a fresh salt
       from bcrypt.gensalt(), so identical passwords never share an encoding.
       The cost factor is a parameter so the service can tune it from config
       and tests can run at the minimum cost (4).

  Verification: bcrypt.checkpw compares in constant time. Any malformed hash
       or oversized input is reported as a plain mismatch.

  Input limits: bcrypt only reads the first 72 bytes of its input, and current
       bcrypt releases refuse longer input outright. validate_password() rejects
       such passwords up front so users get a validation message instead of
       an internal error.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

from auth.errors import InternalError, ValidationError

DEFAULT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72


def validate_password(password: object) -> None:
    """Raise ValidationError unless password is well-formed text of acceptable length.

    Length is counted in characters (code points) after trimming surrounding
    whitespace, so "        " does not pass as an 8-character password.
    """
    if not isinstance(password, str):
        raise ValidationError("password must be text")
    try:
        encoded = password.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates (e.g. from surrogateescape decoding) are not valid text.
        raise ValidationError("password must be valid UTF-8 text") from None
    if len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises InternalError if bcrypt cannot produce a hash (bad cost parameter or
    entropy source failure). Callers validate the password first; this is not
    a user-caused condition.
    """
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")
    except (ValueError, OSError) as exc:
        raise InternalError("failed to hash password") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False
